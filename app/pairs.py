from typing import Tuple

PairKey = Tuple[int, int]


def normalize_pair(user_id: int, other_id: int) -> PairKey:
    """
    Orders two user ids as (low, high).

    Every read or write of a friendship or a time session goes through this
    helper so that a pair is represented by exactly one key.
    """
    if user_id == other_id:
        raise ValueError(f"A pair needs two distinct users, got {user_id} twice")
    return (user_id, other_id) if user_id < other_id else (other_id, user_id)


def other_member(pair: PairKey, user_id: int) -> int:
    low, high = pair
    if user_id == low:
        return high
    if user_id == high:
        return low
    raise ValueError(f"User {user_id} is not part of pair {pair}")
