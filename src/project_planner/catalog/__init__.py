"""Projects and tasks: the facts the plan core checks before it mutates."""
