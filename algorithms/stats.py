# algorithms/stats.py
import numpy as np


def summarize_scores(scores):
    """
    Summary statistics for a list of priority scores.
    Returns zeros for an empty list so dashboards don't need special cases.
    """
    values = np.array([s for s in scores if s is not None], dtype=float)
    if values.size == 0:
        return {'count': 0, 'mean': 0.0, 'median': 0.0, 'p90': 0.0, 'max': 0.0}

    return {
        'count': int(values.size),
        'mean': round(float(values.mean()), 2),
        'median': round(float(np.median(values)), 2),
        'p90': round(float(np.percentile(values, 90)), 2),
        'max': round(float(values.max()), 2),
    }


def waitlist_statistics(recipients):
    """
    Group recipients by organ and summarize their priority scores.

    Args:
        recipients: iterable of objects with organ_needed and priority_score

    Returns:
        Dict with an 'overall' summary and a 'by_organ' mapping
    """
    by_organ = {}
    all_scores = []
    for recipient in recipients:
        by_organ.setdefault(recipient.organ_needed or 'unknown', []).append(recipient.priority_score)
        all_scores.append(recipient.priority_score)

    return {
        'overall': summarize_scores(all_scores),
        'by_organ': {organ: summarize_scores(scores) for organ, scores in sorted(by_organ.items())},
    }
