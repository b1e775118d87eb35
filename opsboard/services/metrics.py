"""
OEE, scrap, lead time and throughput calculations.

Pure functions over records that have already been fetched; callers build
the queries and must filter related record sets with the same line/date
predicate for ratios such as ``scrap_percentage`` to be meaningful.
All percentages are on a 0-100 scale.
"""


def compose_oee(availability, performance, quality):
    """OEE = Availability x Performance x Quality, each as a percentage.

    Inputs are not range-checked.
    """
    return availability * performance * quality / 10000


def availability(planned_time, downtime):
    if planned_time == 0:
        return 0
    return (planned_time - downtime) / planned_time * 100


def performance(ideal_cycle_time, actual_cycle_time, total_units):
    """Ideal vs actual run time for ``total_units``.

    ``total_units`` cancels out; it is kept so the signature mirrors the
    stored sample fields. A zero actual cycle time also yields 0.
    """
    if ideal_cycle_time == 0 or total_units == 0 or actual_cycle_time == 0:
        return 0
    ideal_time = ideal_cycle_time * total_units
    actual_time = actual_cycle_time * total_units
    return ideal_time / actual_time * 100


def quality(good_units, total_units):
    if total_units == 0:
        return 0
    return good_units / total_units * 100


def scrap_percentage(defect_events, production_samples):
    """Defective quantity as a share of all units produced"""
    total_scrap = sum(event.quantity for event in defect_events)
    total_units = sum(sample.total_units for sample in production_samples)
    if total_units == 0:
        return 0
    return total_scrap / total_units * 100


def lead_time_minutes(completed_jobs):
    """Mean start-to-end duration of jobs that have both timestamps"""
    durations = [
        (job.end_time - job.start_time).total_seconds() / 60
        for job in completed_jobs
        if job.start_time and job.end_time
    ]
    if not durations:
        return 0
    return sum(durations) / len(durations)


def throughput(production_samples):
    """Good units produced"""
    return sum(sample.good_units for sample in production_samples)


def average(values):
    values = list(values)
    return sum(values) / len(values) if values else 0


def pareto(defect_events):
    """
    Rank defect types by quantity.

    Returns dicts with defectType, count, percentage and cumulativePercentage,
    largest first. Ties keep first-seen order.
    """
    counts = {}
    for event in defect_events:
        counts[event.defect_type] = counts.get(event.defect_type, 0) + event.quantity

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    total = sum(counts.values())
    if total == 0:
        return []

    rows = []
    cumulative = 0
    for defect_type, count in ranked:
        cumulative += count
        rows.append({
            'defectType': defect_type,
            'count': count,
            'percentage': count / total * 100,
            'cumulativePercentage': cumulative / total * 100,
        })
    return rows
