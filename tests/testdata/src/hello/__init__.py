"""Example application rendering templates through templates.Set."""
