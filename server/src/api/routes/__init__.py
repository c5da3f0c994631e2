from . import (
	debug,
	health,
	loggers,
	status,
)


__all__ = [
	"debug",
	"health",
	"loggers",
	"status",
]
