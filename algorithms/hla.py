"""
HLA Typing Parser
Splits a free-text tissue-typing string into locus tag sets (A, B, DR, DQ)
"""
import re

LOCI = ('A', 'B', 'DR', 'DQ')

_TOKEN_SPLIT = re.compile(r'[\s,;]+')


def _locus_for(token):
    # DR/DQ are checked first so that "DR4" never lands in another locus
    if token.startswith('DR'):
        return 'DR'
    if token.startswith('DQ'):
        return 'DQ'
    if token.startswith('A'):
        return 'A'
    if token.startswith('B'):
        return 'B'
    return None


def parse_hla_report(hla_string):
    """
    Parse a typing string and report which tokens were dropped.

    Args:
        hla_string: e.g. "A2 A24 B7 DR4 DQ6", or None

    Returns:
        Tuple of (typing dict of locus -> set of tokens, list of dropped tokens)

    Raises:
        TypeError: if hla_string is neither a string nor None
    """
    typing = {locus: set() for locus in LOCI}
    dropped = []

    if hla_string is None:
        return typing, dropped
    if not isinstance(hla_string, str):
        raise TypeError(f"HLA typing must be a string, got {type(hla_string).__name__}")

    for token in _TOKEN_SPLIT.split(hla_string.strip()):
        if not token:
            continue
        locus = _locus_for(token)
        if locus is None:
            dropped.append(token)
        else:
            typing[locus].add(token)

    return typing, dropped


def parse_hla(hla_string):
    """Parse a typing string into {'A': set, 'B': set, 'DR': set, 'DQ': set}"""
    typing, _ = parse_hla_report(hla_string)
    return typing


def count_locus_matches(donor_typing, recipient_typing):
    """Exact-token overlap per locus"""
    return {locus: len(donor_typing[locus] & recipient_typing[locus]) for locus in LOCI}
