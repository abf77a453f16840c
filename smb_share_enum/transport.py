from __future__ import annotations
from dataclasses import dataclass
from struct import unpack as struct_unpack, error as struct_error, pack as struct_pack
from typing import Union, Optional, Final
from ipaddress import IPv4Address, IPv6Address
from asyncio import StreamWriter, StreamReader, open_connection as asyncio_open_connection, \
    wait_for as asyncio_wait_for, TimeoutError as AsyncioTimeoutError
from logging import getLogger

from smb_share_enum.exceptions import ConnectionTimeoutError, TransportError, UnexpectedConnectionEndError

LOG = getLogger(__name__)


class NotEnoughDataError(Exception):
    pass


@dataclass
class Transport:
    """The direct TCP transport framing: a four-byte big-endian length followed by the message."""

    stream_protocol_length: int
    message_data: bytes

    @classmethod
    def from_message(cls, message_data: bytes) -> Transport:
        return cls(stream_protocol_length=len(message_data), message_data=message_data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Transport:

        # NOTE: The first byte is a zero byte in direct TCP transport; the length is 24 bits.

        try:
            stream_protocol_length: int = struct_unpack('>I', b'\x00' + data[1:4])[0]
        except struct_error as e:
            raise NotEnoughDataError from e

        if len(data) < (stream_protocol_length + 4):
            raise NotEnoughDataError

        return cls(
            stream_protocol_length=stream_protocol_length,
            message_data=bytes(data[4:4+stream_protocol_length])
        )

    def __len__(self) -> int:
        return 4 + self.stream_protocol_length

    def __bytes__(self) -> bytes:
        return struct_pack('>I', self.stream_protocol_length) + self.message_data


@dataclass
class TCPIPTransport:
    """
    An asyncio TCP connection to which an idle timeout applies.

    The timeout bounds the connection attempt and every single read. Used as an async context manager, the
    connection is always closed on exit.
    """

    address: Final[Union[str, IPv4Address, IPv6Address]]
    port_number: Final[int]
    timeout_in_seconds: Final[float] = 5.0
    read_size: int = 4096

    def __post_init__(self):
        self.reader: Optional[StreamReader] = None
        self.writer: Optional[StreamWriter] = None

    @property
    def is_open(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    async def write(self, data: bytes) -> None:
        try:
            self.writer.write(data)
            await self.writer.drain()
        except OSError as e:
            raise TransportError(f'Could not write to {self.address}:{self.port_number}: {e}') from e

    async def read(self) -> bytes:
        """
        Read the next chunk of data from the connection.

        :return: The bytes that were read; never empty.
        """

        try:
            data: bytes = await asyncio_wait_for(
                fut=self.reader.read(self.read_size),
                timeout=self.timeout_in_seconds
            )
        except AsyncioTimeoutError as e:
            raise ConnectionTimeoutError(timeout_in_seconds=self.timeout_in_seconds) from e
        except OSError as e:
            raise TransportError(f'Could not read from {self.address}:{self.port_number}: {e}') from e

        if not data:
            raise UnexpectedConnectionEndError

        return data

    async def __aenter__(self) -> TCPIPTransport:
        try:
            self.reader, self.writer = await asyncio_wait_for(
                fut=asyncio_open_connection(host=str(self.address), port=self.port_number),
                timeout=self.timeout_in_seconds
            )
        except AsyncioTimeoutError as e:
            raise ConnectionTimeoutError(timeout_in_seconds=self.timeout_in_seconds) from e
        except OSError as e:
            raise TransportError(f'Could not connect to {self.address}:{self.port_number}: {e}') from e

        LOG.debug(f'Connected to {self.address}:{self.port_number}.')

        return self

    async def close(self) -> None:
        if self.writer is None or self.writer.is_closing():
            return

        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            # The peer may already have reset the connection.
            LOG.debug(f'Error while closing the connection to {self.address}:{self.port_number}: {e}')

        LOG.debug(f'Closed the connection to {self.address}:{self.port_number}.')

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
