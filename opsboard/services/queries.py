"""
Shared record-store filters.
"""


def window(model, line=None, start=None, end=None, station=None):
    """Query ``model`` filtered by line/station and an inclusive date range"""
    query = model.query
    if line:
        query = query.filter(model.line == line)
    if station:
        query = query.filter(model.station == station)
    if start is not None:
        query = query.filter(model.date >= start)
    if end is not None:
        query = query.filter(model.date <= end)
    return query


def latest(query, column, limit):
    """Most recent ``limit`` rows, newest first"""
    return query.order_by(column.desc()).limit(limit).all()
