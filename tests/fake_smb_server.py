"""An in-process SMB2 server answering the share enumeration sequence with canned responses."""

from __future__ import annotations
from asyncio import start_server, StreamReader, StreamWriter, IncompleteReadError, Event, AbstractServer
from struct import pack as struct_pack, unpack as struct_unpack
from typing import List, Tuple, Optional, FrozenSet, Sequence

from smb_share_enum.header import Header, HeaderFlag, Command
from smb_share_enum.transport import Transport
from smb_share_enum.structures.file_id import FileId
from smb_share_enum.ntstatus import STATUS_SUCCESS, STATUS_PENDING, STATUS_MORE_PROCESSING_REQUIRED

SESSION_ID = bytes.fromhex('1100000000a40000')
TREE_ID = 0x00000005
FILE_ID = FileId(persistent=bytes.fromhex('0100000000000000'), volatile=bytes.fromhex('ef00000004000000'))
SERVER_CHALLENGE = bytes.fromhex('0123456789abcdef')
TARGET_INFO = bytes.fromhex('02000c0044006f006d00610069006e0001000c0053006500720076006500720000000000')
ASSOC_GROUP_ID = 0x000053c4

# Name, share type word and comment; a comment of `None` is sent as a zero-length string.
ShareEntry = Tuple[str, int, Optional[str]]

DEFAULT_SHARES: Tuple[ShareEntry, ...] = (
    ('PUBLIC', 0x00000000, ''),
    ('ADMIN$', 0x80000000, 'Remote Admin')
)


def response_frame(
    command: Command,
    body: bytes,
    message_id: int,
    status: int = STATUS_SUCCESS,
    session_id: bytes = bytes(8),
    tree_id: int = 0,
    async_id: Optional[int] = None
) -> bytes:
    header = Header(
        command=command,
        message_id=message_id,
        tree_id=tree_id,
        session_id=session_id,
        status=status,
        flags=HeaderFlag(server_to_redir=True, async_command=async_id is not None),
        async_id=async_id
    )

    return bytes(Transport.from_message(message_data=bytes(header) + body))


def error_response_body() -> bytes:
    return struct_pack('<HBxI', 9, 0, 0) + b'\x00'


def negotiate_response_body() -> bytes:
    return struct_pack('<HHH', 65, 0x0001, 0x0210) + bytes(58)


def challenge_message(server_challenge: bytes = SERVER_CHALLENGE, target_info: bytes = TARGET_INFO) -> bytes:
    target_name = 'SERVER'.encode(encoding='utf-16-le')
    target_name_offset = 48
    target_info_offset = target_name_offset + len(target_name)

    return b''.join([
        b'NTLMSSP\x00',
        struct_pack('<I', 2),
        struct_pack('<HHI', len(target_name), len(target_name), target_name_offset),
        struct_pack('<I', 0x00828205 if target_info else 0x00028205),
        server_challenge,
        bytes(8),
        struct_pack('<HHI', len(target_info), len(target_info), target_info_offset),
        target_name,
        target_info
    ])


def session_setup_response_body(security_buffer: bytes) -> bytes:
    return struct_pack('<HHHH', 9, 0, 72, len(security_buffer)) + security_buffer


def tree_connect_response_body() -> bytes:
    # Share type pipe, no flags, no capabilities, maximal access.
    return struct_pack('<HBxIII', 16, 0x02, 0, 0, 0x001f01ff)


def create_response_body(file_id: FileId = FILE_ID) -> bytes:
    return b''.join([
        struct_pack('<HBBI', 89, 0, 0, 1),
        bytes(56),
        bytes(file_id),
        struct_pack('<II', 0, 0)
    ])


def write_response_body(count: int) -> bytes:
    return struct_pack('<HHIII', 17, 0, count, 0, 0)


def read_response_body(data: bytes) -> bytes:
    return struct_pack('<HBxII4x', 17, 80, len(data), 0) + data


def ioctl_response_body(output: bytes, file_id: FileId = FILE_ID) -> bytes:
    return b''.join([
        struct_pack('<H2xI', 49, 0x0011c017),
        bytes(file_id),
        struct_pack('<IIIIII', 112, 0, 112, len(output), 0, 0),
        output
    ])


def close_response_body() -> bytes:
    return struct_pack('<HH4x', 60, 0) + bytes(52)


def rpc_common_header(packet_type: int, fragment_length: int, call_id: int) -> bytes:
    return struct_pack('<BBBB4sHHI', 5, 0, packet_type, 0x03, b'\x10\x00\x00\x00', fragment_length, 0, call_id)


def bind_ack(call_id: int = 0, accept: bool = True) -> bytes:
    secondary_address = b'\\PIPE\\srvsvc\x00'
    ndr_syntax = bytes.fromhex('045d888aeb1cc9119fe808002b10486002000000')

    body = b''.join([
        struct_pack('<HHI', 4280, 4280, ASSOC_GROUP_ID),
        struct_pack('<H', len(secondary_address)),
        secondary_address,
        # Align the result list.
        b'\x00',
        struct_pack('<B3x', 1),
        struct_pack('<HH', 0 if accept else 2, 0 if accept else 1),
        ndr_syntax if accept else bytes(20)
    ])

    return rpc_common_header(packet_type=12, fragment_length=16 + len(body), call_id=call_id) + body


def ndr_string(text: Optional[str]) -> bytes:
    if text is None:
        return struct_pack('<III', 0, 0, 0)

    characters = text + '\x00'
    num_characters = len(characters)
    return b''.join([
        struct_pack('<III', num_characters, 0, num_characters),
        characters.encode(encoding='utf-16-le'),
        b'\x00\x00' if num_characters % 2 != 0 else b''
    ])


def share_enum_response(shares: Sequence[ShareEntry] = DEFAULT_SHARES, call_id: int = 1) -> bytes:
    entries = b''.join(
        struct_pack('<III', 0x00020008 + 8 * i, share_type_word, 0x0002000c + 8 * i)
        for i, (_, share_type_word, _) in enumerate(shares)
    )
    strings = b''.join(ndr_string(name) + ndr_string(comment) for name, _, comment in shares)

    stub = b''.join([
        # Level, union switch, container referent, entries read
        struct_pack('<IIII', 1, 1, 0x00020000, len(shares)),
        # Array referent, maximum count
        struct_pack('<II', 0x00020004, len(shares)),
        entries,
        strings,
        # Total entries, resume handle referent and value, return value
        struct_pack('<IIII', len(shares), 0x00020010, 0, 0)
    ])

    return b''.join([
        rpc_common_header(packet_type=2, fragment_length=24 + len(stub), call_id=call_id),
        struct_pack('<IHBx', len(stub), 0, 0),
        stub
    ])


def fault_response(fault_status: int, call_id: int = 1) -> bytes:
    return b''.join([
        rpc_common_header(packet_type=3, fragment_length=32, call_id=call_id),
        struct_pack('<IHBx', 0, 0, 0),
        struct_pack('<I4x', fault_status)
    ])


class FakeSmbServer:
    """
    Answer each request of the share enumeration sequence.

    :param shares: The shares listed in the enumeration response.
    :param session_setup_status: A status with which to fail the first session setup.
    :param pending_commands: Commands whose response is preceded by an interim pending response in the same write.
    :param silent_commands: Commands that are never answered.
    :param closing_commands: Commands that are answered by closing the connection.
    :param misnumbered_commands: Commands whose response carries the message id following that of the request.
    :param ioctl_output: The output of the IOCTL response, in place of the share enumeration response.
    :param challenge_body: The body of the session setup response carrying the challenge.
    """

    def __init__(
        self,
        shares: Sequence[ShareEntry] = DEFAULT_SHARES,
        session_setup_status: Optional[int] = None,
        pending_commands: FrozenSet[Command] = frozenset(),
        silent_commands: FrozenSet[Command] = frozenset(),
        closing_commands: FrozenSet[Command] = frozenset(),
        misnumbered_commands: FrozenSet[Command] = frozenset(),
        ioctl_output: Optional[bytes] = None,
        challenge_body: Optional[bytes] = None
    ):
        self.shares = shares
        self.session_setup_status = session_setup_status
        self.pending_commands = pending_commands
        self.silent_commands = silent_commands
        self.closing_commands = closing_commands
        self.misnumbered_commands = misnumbered_commands
        self.ioctl_output = ioctl_output
        self.challenge_body = challenge_body

        self.requests: List[Tuple[Header, bytes]] = []
        self.connection_closed = Event()
        self.port: Optional[int] = None
        self._server: Optional[AbstractServer] = None

    def requests_of(self, command: Command) -> List[Tuple[Header, bytes]]:
        return [(header, body) for header, body in self.requests if header.command is command]

    def _response_body(self, header: Header, body: bytes) -> Tuple[bytes, int]:
        if header.command is Command.SMB2_NEGOTIATE:
            return negotiate_response_body(), STATUS_SUCCESS
        elif header.command is Command.SMB2_SESSION_SETUP:
            if header.session_id == bytes(8):
                if self.session_setup_status is not None:
                    return error_response_body(), self.session_setup_status
                if self.challenge_body is not None:
                    return self.challenge_body, STATUS_MORE_PROCESSING_REQUIRED
                return session_setup_response_body(challenge_message()), STATUS_MORE_PROCESSING_REQUIRED
            return session_setup_response_body(b''), STATUS_SUCCESS
        elif header.command is Command.SMB2_TREE_CONNECT:
            return tree_connect_response_body(), STATUS_SUCCESS
        elif header.command is Command.SMB2_CREATE:
            return create_response_body(), STATUS_SUCCESS
        elif header.command is Command.SMB2_WRITE:
            return write_response_body(count=struct_unpack('<I', body[4:8])[0]), STATUS_SUCCESS
        elif header.command is Command.SMB2_READ:
            return read_response_body(data=bind_ack()), STATUS_SUCCESS
        elif header.command is Command.SMB2_IOCTL:
            output = self.ioctl_output if self.ioctl_output is not None else share_enum_response(shares=self.shares)
            return ioctl_response_body(output=output), STATUS_SUCCESS
        elif header.command is Command.SMB2_CLOSE:
            return close_response_body(), STATUS_SUCCESS
        else:
            return error_response_body(), 0xc00000bb

    def _response(self, header: Header, body: bytes) -> bytes:
        response_body, status = self._response_body(header=header, body=body)

        session_id = SESSION_ID if header.command is not Command.SMB2_NEGOTIATE else bytes(8)
        tree_id = TREE_ID if header.command not in {Command.SMB2_NEGOTIATE, Command.SMB2_SESSION_SETUP} else 0
        message_id = header.message_id + 1 if header.command in self.misnumbered_commands else header.message_id

        response = response_frame(
            command=header.command,
            body=response_body,
            message_id=message_id,
            status=status,
            session_id=session_id,
            tree_id=tree_id
        )

        if header.command in self.pending_commands:
            interim_response = response_frame(
                command=header.command,
                body=error_response_body(),
                message_id=message_id,
                status=STATUS_PENDING,
                session_id=session_id,
                async_id=1
            )
            return interim_response + response

        return response

    async def _handle(self, reader: StreamReader, writer: StreamWriter) -> None:
        try:
            while True:
                try:
                    length: int = struct_unpack('>I', await reader.readexactly(4))[0]
                    message = await reader.readexactly(length)
                except IncompleteReadError:
                    break

                header = Header.from_bytes(data=message)
                body = message[Header.STRUCTURE_SIZE:]
                self.requests.append((header, body))

                if header.command in self.closing_commands:
                    break

                if header.command in self.silent_commands:
                    continue

                writer.write(self._response(header=header, body=body))
                await writer.drain()
        finally:
            writer.close()
            self.connection_closed.set()

    async def __aenter__(self) -> FakeSmbServer:
        self._server = await start_server(self._handle, host='127.0.0.1', port=0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._server.close()
        await self._server.wait_closed()
