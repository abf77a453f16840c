"""
The connection-oriented DCE/RPC PDUs used over the named pipe.

https://pubs.opengroup.org/onlinepubs/9629399/chap12.htm
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from struct import pack as struct_pack, unpack_from as struct_unpack_from, error as struct_error
from typing import ClassVar, List, ByteString

from msdsalgs.utils import Mask
from rpc.structures.context_list import ContextList

from smb_share_enum.exceptions import MalformedRpcResponseError, RpcFaultError


class PacketType(IntEnum):
    REQUEST = 0
    PING = 1
    RESPONSE = 2
    FAULT = 3
    WORKING = 4
    NOCALL = 5
    REJECT = 6
    ACK = 7
    CL_CANCEL = 8
    FACK = 9
    CANCEL_ACK = 10
    BIND = 11
    BIND_ACK = 12
    BIND_NAK = 13
    ALTER_CONTEXT = 14
    ALTER_CONTEXT_RESP = 15
    SHUTDOWN = 17
    CO_CANCEL = 18
    ORPHANED = 19


class PfcFlagMask(IntFlag):
    PFC_FIRST_FRAG = 0x01
    PFC_LAST_FRAG = 0x02
    PFC_PENDING_CANCEL = 0x04
    PFC_CONC_MPX = 0x10
    PFC_DID_NOT_EXECUTE = 0x20
    PFC_MAYBE = 0x40
    PFC_OBJECT_UUID = 0x80


PfcFlag = Mask.make_class(PfcFlagMask, prefix='PFC_')


class ContextResult(IntEnum):
    ACCEPTANCE = 0
    USER_REJECTION = 1
    PROVIDER_REJECTION = 2
    NEGOTIATE_ACK = 3


# Little-endian integers, ASCII characters, IEEE floating point.
DATA_REPRESENTATION: bytes = b'\x10\x00\x00\x00'


def _common_header(packet_type: PacketType, fragment_length: int, call_id: int) -> bytes:
    return b''.join([
        # Version 5.0
        struct_pack('<BB', 5, 0),
        struct_pack('<B', packet_type.value),
        struct_pack('<B', int(PfcFlag(first_frag=True, last_frag=True))),
        DATA_REPRESENTATION,
        struct_pack('<H', fragment_length),
        # No authentication verifier.
        struct_pack('<H', 0),
        struct_pack('<I', call_id)
    ])


@dataclass
class BindRequest:
    COMMON_HEADER_SIZE: ClassVar[int] = 16

    call_id: int
    context_list: ContextList
    max_xmit_frag: int = 4280
    max_recv_frag: int = 4280
    assoc_group_id: int = 0

    def __bytes__(self) -> bytes:
        body = b''.join([
            struct_pack('<HHI', self.max_xmit_frag, self.max_recv_frag, self.assoc_group_id),
            bytes(self.context_list)
        ])

        return _common_header(
            packet_type=PacketType.BIND,
            fragment_length=self.COMMON_HEADER_SIZE + len(body),
            call_id=self.call_id
        ) + body


@dataclass
class RequestPdu:
    HEADER_SIZE: ClassVar[int] = 24

    call_id: int
    opnum: int
    stub_data: bytes
    context_id: int = 0

    def __bytes__(self) -> bytes:
        return b''.join([
            _common_header(
                packet_type=PacketType.REQUEST,
                fragment_length=self.HEADER_SIZE + len(self.stub_data),
                call_id=self.call_id
            ),
            # The allocation hint is the length of the stub data.
            struct_pack('<I', len(self.stub_data)),
            struct_pack('<HH', self.context_id, self.opnum),
            self.stub_data
        ])


@dataclass
class BindAck:
    max_xmit_frag: int
    max_recv_frag: int
    assoc_group_id: int
    results: List[ContextResult]


def _packet_type(data: ByteString) -> int:
    if len(data) < 16:
        raise MalformedRpcResponseError(
            message_header='Truncated RPC PDU.',
            observed_value=len(data),
            expected_value=16,
            expected_label='Expected at least'
        )

    return struct_unpack_from('<B', data, 2)[0]


def _check_packet_type(data: ByteString, expected_packet_type: PacketType) -> None:
    packet_type = _packet_type(data=data)

    if packet_type == PacketType.FAULT:
        try:
            fault_status: int = struct_unpack_from('<I', data, 24)[0]
        except struct_error as e:
            raise MalformedRpcResponseError(
                message_header='Truncated RPC fault PDU.',
                observed_value=len(data),
                expected_value=28,
                expected_label='Expected at least'
            ) from e
        raise RpcFaultError(fault_status=fault_status)

    if packet_type != expected_packet_type:
        raise MalformedRpcResponseError(
            message_header='Bad RPC PDU type.',
            observed_value=packet_type,
            expected_value=expected_packet_type.value
        )


def parse_bind_ack(data: ByteString) -> BindAck:
    """
    Interpret the response to a bind request.

    :param data: The PDU read from the pipe.
    :return: The negotiated fragment sizes, association group and per-context results.
    """

    _check_packet_type(data=data, expected_packet_type=PacketType.BIND_ACK)

    try:
        max_xmit_frag, max_recv_frag, assoc_group_id = struct_unpack_from('<HHI', data, 16)
        secondary_address_length: int = struct_unpack_from('<H', data, 24)[0]

        offset = 26 + secondary_address_length
        # The result list is aligned on four bytes.
        offset += -offset % 4

        num_results: int = struct_unpack_from('<B', data, offset)[0]
        offset += 4

        results = [
            ContextResult(struct_unpack_from('<H', data, offset + i * 24)[0])
            for i in range(num_results)
        ]
    except (struct_error, ValueError) as e:
        raise MalformedRpcResponseError(
            message_header='Truncated or malformed bind acknowledgement.',
            observed_value=len(data),
            expected_value='a complete result list',
            expected_label='Expected'
        ) from e

    if ContextResult.ACCEPTANCE not in results:
        raise MalformedRpcResponseError(
            message_header='No presentation context was accepted.',
            observed_value=[result.name for result in results],
            expected_value=ContextResult.ACCEPTANCE.name,
            expected_label='Expected one of'
        )

    return BindAck(
        max_xmit_frag=max_xmit_frag,
        max_recv_frag=max_recv_frag,
        assoc_group_id=assoc_group_id,
        results=results
    )


def response_stub(data: ByteString) -> bytes:
    """
    Extract the stub data of a response PDU.

    :param data: The PDU returned by the pipe transceive.
    :return: The stub data, i.e. the marshalled output parameters.
    """

    _check_packet_type(data=data, expected_packet_type=PacketType.RESPONSE)

    fragment_length: int = struct_unpack_from('<H', data, 8)[0]
    if len(data) < fragment_length:
        raise MalformedRpcResponseError(
            message_header='Truncated RPC response.',
            observed_value=len(data),
            expected_value=fragment_length
        )

    return bytes(memoryview(data)[RequestPdu.HEADER_SIZE:fragment_length])
