"""On-chain vote memo encoding.

The caller is responsible for keeping ids within the memo field's length
limits; nothing is validated here.
"""

from collections.abc import Iterable


def format_ranked_vote_memo_consideration(proposal_ids: Iterable[int]) -> str:
    """Consideration-stage memo: ``YES <id1> <id2> ...`` in the given order."""
    return "YES " + " ".join(str(pid) for pid in proposal_ids)


def format_ranked_vote_memo_voting(funding_round_id: int, proposal_ids: Iterable[int]) -> str:
    """Final voting memo: ``MEF <round> <id1> ... <idn>``, highest rank first."""
    return f"MEF {funding_round_id} " + " ".join(str(pid) for pid in proposal_ids)
