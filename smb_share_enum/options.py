from __future__ import annotations
from dataclasses import dataclass, fields
from re import compile as re_compile
from typing import Mapping, Any, Union, Dict, Final

from smb_share_enum.exceptions import InvalidConnectionStringError, MissingHostError

DEFAULT_PORT: Final[int] = 445
DEFAULT_USERNAME: Final[str] = 'guest'
DEFAULT_PASSWORD: Final[str] = ''
DEFAULT_DOMAIN: Final[str] = 'WORKGROUP'
DEFAULT_TIMEOUT: Final[int] = 5000

# scheme://[[domain;]username[:password]@]host[:port]
_CONNECTION_STRING_PATTERN = re_compile(
    pattern=r'^[A-Za-z][A-Za-z0-9+.-]*://'
            r'(?:(?:(?P<domain>.*?);)?(?P<username>.*?)(?::(?P<password>.*?))?@)?'
            r'(?P<host>[^:/]+)'
            r'(?::(?P<port>\d+))?'
)


@dataclass(frozen=True)
class ConnectionOptions:
    """
    The parameters of a single share enumeration.

    `timeout` is the idle timeout of the connection in milliseconds.
    """

    host: str
    port: int = DEFAULT_PORT
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    domain: str = DEFAULT_DOMAIN
    timeout: int = DEFAULT_TIMEOUT

    def __post_init__(self):
        if not self.host:
            raise MissingHostError

    @property
    def timeout_in_seconds(self) -> float:
        return self.timeout / 1000

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> ConnectionOptions:
        """
        Make connection options from a mapping of option names, letting missing or empty values take their defaults.

        :param mapping: A mapping with a `host` key and optionally any of the other option names.
        :return: Connection options corresponding to the mapping.
        """

        option_names = {field.name for field in fields(cls)}
        # Empty values fall back on the defaults, the same way as omitted connection string parts.
        kwargs: Dict[str, Any] = {
            name: value
            for name, value in mapping.items()
            if name in option_names and value not in (None, '')
        }

        if 'host' not in kwargs:
            raise MissingHostError

        # A zero port or timeout means the default.
        for name in ('port', 'timeout'):
            if name in kwargs:
                if value := int(kwargs[name]):
                    kwargs[name] = value
                else:
                    del kwargs[name]

        return cls(**kwargs)

    @classmethod
    def from_string(cls, connection_string: str) -> ConnectionOptions:
        """
        Parse a connection string of the form `smb://[[domain;]username[:password]@]host[:port]`.

        :param connection_string: The connection string to be parsed.
        :return: Connection options corresponding to the connection string.
        """

        if not (match := _CONNECTION_STRING_PATTERN.search(connection_string)):
            raise InvalidConnectionStringError(connection_string=connection_string)

        return cls.from_mapping(match.groupdict())

    @classmethod
    def from_descriptor(cls, descriptor: Union[str, ConnectionOptions, Mapping[str, Any]]) -> ConnectionOptions:
        if isinstance(descriptor, ConnectionOptions):
            return descriptor
        elif isinstance(descriptor, str):
            return cls.from_string(connection_string=descriptor)
        elif isinstance(descriptor, Mapping):
            return cls.from_mapping(mapping=descriptor)
        else:
            raise TypeError(f'Unsupported connection descriptor type: {type(descriptor).__name__}')

