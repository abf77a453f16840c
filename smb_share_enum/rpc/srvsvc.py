"""
The Server Service Remote Protocol, limited to enumerating shares at info level 1.

https://docs.microsoft.com/en-us/openspecs/windows_protocols/ms-srvs/accf23b0-0f57-441c-9185-43041f1b0ee9
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from struct import pack as struct_pack, unpack_from as struct_unpack_from, error as struct_error
from typing import Final, List, Tuple, ByteString
from logging import getLogger

from rpc.structures.context_list import ContextList, ContextElement
from ms_srvs import MS_SRVS_ABSTRACT_SYNTAX

from smb_share_enum.rpc.pdu import BindRequest, RequestPdu, response_stub
from smb_share_enum.exceptions import MalformedRpcResponseError

LOG = getLogger(__name__)

NETR_SHARE_ENUM_OPNUM: Final[int] = 15

SHARE_TYPE_HIDDEN: Final[int] = 0x80000000
SHARE_TYPE_TEMPORARY: Final[int] = 0x40000000

_SHARE_INFO_1_ENTRY_SIZE: Final[int] = 12
_SHARE_COUNT_OFFSET: Final[int] = 36
_SHARE_ENTRIES_OFFSET: Final[int] = 48


class ShareType(IntEnum):
    DISK_TREE = 0x00
    PRINT_QUEUE = 0x01
    COMM_DEVICE = 0x02
    IPC = 0x03


@dataclass(frozen=True)
class ShareRecord:
    name: str
    type: ShareType
    hidden: bool
    temporary: bool
    comments: str = ''


def build_bind_request(call_id: int) -> bytes:
    """
    Build a bind request for the server service interface.

    A single presentation context is offered, with the NDR transfer syntax.

    :param call_id: The RPC call id of the request.
    :return: The bind PDU.
    """

    return bytes(
        BindRequest(
            call_id=call_id,
            context_list=ContextList([ContextElement(context_id=0, abstract_syntax=MS_SRVS_ABSTRACT_SYNTAX)])
        )
    )


def _marshal_server_name(host_name: str) -> bytes:
    server_name = f'\\\\{host_name}\x00'
    num_characters = len(server_name)

    # The conformant array is padded to a four-byte boundary; the counts exclude the padding.
    padded_server_name = server_name + '\x00' if num_characters % 2 != 0 else server_name

    return b''.join([
        # Referent id of the `ServerName` pointer.
        struct_pack('<I', 0x00020000),
        # Maximum count, offset, actual count
        struct_pack('<III', num_characters, 0, num_characters),
        padded_server_name.encode(encoding='utf-16-le')
    ])


def build_net_share_enum_all_request(call_id: int, host_name: str) -> bytes:
    """
    Build a `NetrShareEnum` request at info level 1.

    :param call_id: The RPC call id of the request.
    :param host_name: The name of the server, to be passed as `ServerName`.
    :return: The request PDU.
    """

    stub_data = b''.join([
        _marshal_server_name(host_name=host_name),
        # `InfoStruct`: the level, the union switch and a pointer to an empty `SHARE_INFO_1_CONTAINER`.
        struct_pack('<I', 1),
        struct_pack('<I', 1),
        struct_pack('<I', 0x00020004),
        struct_pack('<I', 0),
        struct_pack('<I', 0),
        # `PreferedMaximumLength`: no limit.
        struct_pack('<I', 0xffffffff),
        # `ResumeHandle`: a referent id followed by the value.
        struct_pack('<I', 0x00020008),
        struct_pack('<I', 0)
    ])

    return bytes(RequestPdu(call_id=call_id, opnum=NETR_SHARE_ENUM_OPNUM, stub_data=stub_data))


def _read_string(data: ByteString, offset: int) -> Tuple[str, int]:
    actual_count: int = struct_unpack_from('<I', data, offset + 8)[0]
    offset += 12

    # A zero count is an empty string without a terminator.
    text_end = offset + max(actual_count * 2 - 2, 0)
    if text_end > len(data):
        raise MalformedRpcResponseError(
            message_header='Bad conformant string in the share enumeration response.',
            observed_value=actual_count,
            expected_value=(len(data) - offset) // 2 + 1,
            expected_label='Expected at most'
        )

    text = bytes(data[offset:text_end]).decode(encoding='utf-16-le')
    offset += actual_count * 2 if actual_count % 2 == 0 else actual_count * 2 + 2

    return text, offset


def _share_type(share_type_word: int) -> ShareType:
    try:
        return ShareType(share_type_word & 0xff)
    except ValueError as e:
        raise MalformedRpcResponseError(
            message_header='Bad share type in the share enumeration response.',
            observed_value=share_type_word & 0xff,
            expected_value=[share_type.name for share_type in ShareType],
            expected_label='Expected one of'
        ) from e


def parse_share_enum_response(data: ByteString) -> List[ShareRecord]:
    """
    Decode the shares of a `NetrShareEnum` response PDU.

    The `SHARE_INFO_1` entries are read first, and then the deferred name and comment strings of each entry, in the
    same order.

    :param data: The response PDU, as returned by the pipe transceive.
    :return: The shares, in the order in which the server listed them.
    """

    # Raises if the PDU is a fault or of the wrong type.
    response_stub(data=data)

    try:
        share_count: int = struct_unpack_from('<I', data, _SHARE_COUNT_OFFSET)[0]

        offset = _SHARE_ENTRIES_OFFSET
        share_type_words: List[int] = []
        for _ in range(share_count):
            share_type_words.append(struct_unpack_from('<I', data, offset + 4)[0])
            offset += _SHARE_INFO_1_ENTRY_SIZE

        share_records: List[ShareRecord] = []
        for share_type_word in share_type_words:
            name, offset = _read_string(data=data, offset=offset)
            comments, offset = _read_string(data=data, offset=offset)

            share_records.append(
                ShareRecord(
                    name=name,
                    type=_share_type(share_type_word=share_type_word),
                    hidden=bool(share_type_word & SHARE_TYPE_HIDDEN),
                    temporary=bool(share_type_word & SHARE_TYPE_TEMPORARY),
                    comments=comments
                )
            )
    except struct_error as e:
        raise MalformedRpcResponseError(
            message_header='Truncated share enumeration response.',
            observed_value=len(data),
            expected_value='more data',
            expected_label='Expected'
        ) from e

    LOG.debug(f'Parsed {len(share_records)} share(s).')

    return share_records
