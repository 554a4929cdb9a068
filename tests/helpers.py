def chain(ids, kind="CROSS_REFERENCE"):
    return [{"id": f"{a}-{b}", "source": a, "target": b, "type": kind} for a, b in zip(ids, ids[1:])]


def pairwise(nodes):
    for i, a in enumerate(nodes):
        for b in nodes[i + 1:]:
            yield a, b
