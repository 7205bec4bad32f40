from enum import Enum
from typing import NamedTuple
import resource


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Each connection holds a socket and an open file while streaming
REASONABLE_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit of the given scope towards its hard limit,
	capped at `maximum` (or the reasonable limit when `0`). Returns the
	new soft limit, or `False` when it could not be changed."""
	lm = limit(scope)
	try:
		hard = lm.hard if lm.hard != resource.RLIM_INFINITY else lm.soft
		target = int(lm.soft + ratio * (hard - lm.soft))
		# Darwin reports really high limits that lead to OverflowErrors.
		maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
		if maximum:
			target = min(maximum, target)
		target = max(target, lm.soft)
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except ValueError:
		return False
	except OSError:
		return False


# EOF
