# ==============================================================================
# app/calculator/fields.py
# ------------------------------------------------------------------------------
# Sales and campaigns reach the calculator either as ORM rows or as plain
# dicts (JSON payloads, simulation samples). This reads a field from both.
# ==============================================================================

def read_field(record, *names, default=None):
    """Returns the first non-None value among the given field names."""
    if record is None:
        return default
    for name in names:
        if isinstance(record, dict):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return default
