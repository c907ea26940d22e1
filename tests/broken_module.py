"""Module whose import fails, for locate error handling."""

msg = "this module cannot be imported"
raise RuntimeError(msg)
