def format_amount(amount: float) -> str:
    """Indian digit grouping: 1234567.5 -> 12,34,567.50"""
    whole, fraction = f"{amount:.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{whole}.{fraction}"
