"""
Closed-form probabilities for one section.

A section of `n` nodes draws each member independently, malicious with
probability `f`, so its malicious count is Binomial(n, f). With a count
threshold `t`:

- quorum is lost when the honest members cannot reach `t`:
  P[malicious > n - t]
- quorum is compromised when the malicious members alone reach `t`:
  P[malicious >= t]
"""
from scipy.stats import binom


def p_lost(n: int, f: float, threshold: int) -> float:
    if n <= 0:
        return 1.0
    return float(binom.sf(n - threshold, n, f))


def p_compromised(n: int, f: float, threshold: int) -> float:
    if n <= 0 or threshold <= 0:
        return 0.0
    return float(binom.sf(threshold - 1, n, f))


def section_probs(rule, n: int, f: float):
    """(p_lost, p_compromised) for one section of size `n` under `rule`."""
    t = rule.count_threshold(n)
    return p_lost(n, f, t), p_compromised(n, f, t)


def any_of(p: float, count: float) -> float:
    """Probability that at least one of `count` independent sections is affected."""
    if count <= 0:
        return 0.0
    return 1.0 - (1.0 - p) ** count


def weighted(sizes_counts, rule, f: float, any_section: bool):
    """
    Combine per-size probabilities over an empirical size distribution.

    `sizes_counts` is a sequence of (size, number_of_sections). Without
    `any_section` this is the weighted mean sum(w_i * p(n_i)); with it, the
    chance that any of the sections is affected. Sections are treated as
    independent, which is close enough unless malicious nodes are many.
    """
    total = sum(c for _, c in sizes_counts)
    if total == 0:
        return 0.0, 0.0
    lost = comp = 0.0
    ok_lost = ok_comp = 1.0
    for n, c in sizes_counts:
        pl, pc = section_probs(rule, int(n), f)
        w = c / total
        lost += w * pl
        comp += w * pc
        ok_lost *= (1.0 - pl) ** c
        ok_comp *= (1.0 - pc) ** c
    if any_section:
        return 1.0 - ok_lost, 1.0 - ok_comp
    return lost, comp
