"""Golf scorecard service: round entry, completion and WHS handicaps."""
