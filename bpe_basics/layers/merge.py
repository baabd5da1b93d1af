import heapq

from .errors import InternalConsistencyError


def byte_pair_merge(piece: bytes, ranks: dict[bytes, int]) -> list[int]:
    """
    对一个片段反复合并 rank 最小的相邻 span，直到没有可合并的对。

    参数：
        piece: 片段的原始字节。
        ranks: bytes -> rank 反向索引。
    返回：
        span 边界列表 [0, b1, ..., len(piece)]，相邻两个边界之间就是一个最终 span。

    每次合并 span 数减一，所以最多执行 len(piece) - 1 次。候选对放在按 (rank, 起点)
    排序的小顶堆里，rank 相同时最左边的先合并；过期的候选在弹出时丢弃。
    """
    n = len(piece)
    if n == 0:
        return [0]
    if n == 1:
        return [0, 1]

    # ends[i]: 以 i 开始的 span 的结束位置；已被左侧吞并的 span 置为 -1
    ends = list(range(1, n + 1))
    # starts[i]: 以 i 开始的 span 左边那个 span 的起点
    starts = list(range(-1, n - 1))

    heap = []
    for i in range(n - 1):
        rank = ranks.get(piece[i:i + 2])
        if rank is not None:
            heap.append((rank, i, i + 2))
    heapq.heapify(heap)

    while heap:
        _, left, end = heapq.heappop(heap)
        right = ends[left]
        if right == -1 or right >= n or ends[right] != end:
            continue

        ends[left] = end
        ends[right] = -1
        if end < n:
            starts[end] = left

        prev = starts[left]
        if prev >= 0:
            rank = ranks.get(piece[prev:end])
            if rank is not None:
                heapq.heappush(heap, (rank, prev, end))
        if end < n:
            next_end = ends[end]
            rank = ranks.get(piece[left:next_end])
            if rank is not None:
                heapq.heappush(heap, (rank, left, next_end))

    boundaries = [0]
    pos = 0
    while pos < n:
        pos = ends[pos]
        boundaries.append(pos)
    return boundaries


def byte_pair_split(piece: bytes, ranks: dict[bytes, int]) -> list[bytes]:
    boundaries = byte_pair_merge(piece, ranks)
    return [piece[start:end] for start, end in zip(boundaries, boundaries[1:])]


def byte_pair_encode(piece: bytes, ranks: dict[bytes, int]) -> list[int]:
    """把一个片段编码成 token id 列表。"""
    if len(piece) == 1:
        parts = [piece]
    else:
        parts = byte_pair_split(piece, ranks)

    ids = []
    for part in parts:
        rank = ranks.get(part)
        if rank is None:
            raise InternalConsistencyError(f"Merged span {part!r} has no rank in the vocabulary")
        ids.append(rank)
    return ids
