# stackdump_index/votes_stage.py
from __future__ import annotations
from typing import Dict, Iterable, Optional

from .idsets import has
from .records import Record, VOTETYPE_DOWNMOD, VOTETYPE_UPMOD, stream_percent
from .utils import ProgressCallback, log

_DELTA = {VOTETYPE_UPMOD: 1, VOTETYPE_DOWNMOD: -1}

def total_votes(votes: Iterable[Record], wanted_ids,
                on_progress: Optional[ProgressCallback] = None,
                every: int = 100) -> Dict[int, int]:
    """Net up/down score per post id, for the ids in `wanted_ids` only.

    Every wanted id that shows up in the stream gets an entry, even when its
    votes cancel out to 0. Ids never voted on are absent.
    """
    totals: Dict[int, int] = {}
    read = 0
    for vote in votes:
        read += 1
        post_id = vote.get("PostId")
        if has(wanted_ids, post_id):
            count = totals.setdefault(post_id, 0)
            totals[post_id] = count + _DELTA.get(vote.get("VoteTypeId"), 0)
        if on_progress and read % every == 0:
            on_progress(read, len(totals), stream_percent(votes, read), "% completion totalling Votes")
    if on_progress:
        on_progress(read, len(totals), 100.0, "% completion totalling Votes")
    log(f"[votes] read {read:,} votes; totals for {len(totals):,} posts")
    return totals
