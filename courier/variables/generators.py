"""Built-in generators behind ``{{$name}}`` placeholders."""

import random
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

GeneratedValue = Union[str, int]

FIRST_NAMES = [
    "James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica",
    "Thomas", "Sarah", "Charles", "Karen", "Christopher", "Lisa", "Daniel", "Nancy",
    "Matthew", "Betty", "Anthony", "Margaret", "Mark", "Sandra", "Donald", "Ashley",
    "Steven", "Kimberly", "Paul", "Emily", "Andrew", "Donna", "Joshua", "Michelle",
]

LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson",
    "Thomas", "Taylor", "Moore", "Jackson", "Martin", "Lee", "Perez", "Thompson",
    "White", "Harris", "Sanchez", "Clark", "Ramirez", "Lewis", "Robinson", "Walker",
    "Young", "Allen", "King", "Wright", "Scott", "Torres", "Nguyen", "Hill", "Flores",
]

EMAIL_DOMAINS = ["example.com", "test.com", "mail.test", "demo.org", "sample.net"]

ALPHANUMERIC = string.ascii_letters + string.digits

DEFAULT_INT_RANGE = (0, 1000)
DEFAULT_STRING_LENGTH = 8
MAX_STRING_LENGTH = 1000


def _parse_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def random_int(params: Optional[str] = None) -> int:
    """Random integer in an inclusive range.

    ``params`` is ``"min:max"`` or a single ``"max"``; unparseable values fall
    back to the default ``0:1000`` range and a reversed range is swapped.
    """
    low, high = DEFAULT_INT_RANGE
    if params:
        parts = params.split(":")
        if len(parts) >= 2:
            parsed_low, parsed_high = _parse_int(parts[0]), _parse_int(parts[1])
            if parsed_low is not None and parsed_high is not None:
                low, high = parsed_low, parsed_high
        else:
            parsed_high = _parse_int(parts[0])
            if parsed_high is not None:
                high = parsed_high
    if low > high:
        low, high = high, low
    return random.randint(low, high)


def random_string(params: Optional[str] = None) -> str:
    length = DEFAULT_STRING_LENGTH
    if params:
        parsed = _parse_int(params)
        if parsed is not None and parsed > 0:
            length = min(parsed, MAX_STRING_LENGTH)
    return "".join(random.choices(ALPHANUMERIC, k=length))


def random_email(params: Optional[str] = None) -> str:
    username = random_string(str(DEFAULT_STRING_LENGTH)).lower()
    return f"{username}@{random.choice(EMAIL_DOMAINS)}"


def random_name(params: Optional[str] = None) -> str:
    return f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"


def iso_timestamp(params: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class DynamicValueGenerator:
    """Generates values for dynamic placeholders with per-pass memoization.

    The cache maps ``(name, params)`` to the generated value, so the same
    placeholder text repeated within one pass resolves to the same value
    until :meth:`clear_cache` is called.
    """

    def __init__(self):
        self._cache: Dict[Tuple[str, Optional[str]], GeneratedValue] = {}
        self._generators: Dict[str, Callable[[Optional[str]], GeneratedValue]] = {
            "timestamp": lambda params: int(time.time()),
            "timestampMs": lambda params: int(time.time() * 1000),
            "isoTimestamp": iso_timestamp,
            "uuid": lambda params: str(uuid.uuid4()),
            "randomInt": random_int,
            "randomString": random_string,
            "randomEmail": random_email,
            "randomName": random_name,
        }

    def generate(self, name: str, params: Optional[str] = None) -> Optional[GeneratedValue]:
        """Value for ``{{$name:params}}``, or ``None`` for an unknown generator."""
        key = (name, params or None)
        if key in self._cache:
            return self._cache[key]

        generator = self._generators.get(name)
        if generator is None:
            return None

        value = generator(params or None)
        self._cache[key] = value
        return value

    def clear_cache(self) -> None:
        self._cache.clear()

    def is_dynamic_variable(self, name: str) -> bool:
        return name in self._generators

    def placeholder(self, name: str, params: Optional[str] = None) -> str:
        """Preview token such as ``[uuid]`` or ``[randomInt:1:100]``."""
        if params:
            return f"[{name}:{params}]"
        return f"[{name}]"

    def supported_generators(self) -> List[str]:
        return list(self._generators)

    @property
    def cache_size(self) -> int:
        return len(self._cache)
