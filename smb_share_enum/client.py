from __future__ import annotations
from typing import List, Union, Mapping, Any, Optional
from logging import getLogger

from ms_srvs import MS_SRVS_PIPE_NAME

from smb_share_enum.options import ConnectionOptions
from smb_share_enum.session import Session
from smb_share_enum.structures.session_state import SessionState
from smb_share_enum.transport import TCPIPTransport, NotEnoughDataError
from smb_share_enum.header import Command
from smb_share_enum.codec import encode, decode, ResponseFrame
from smb_share_enum.ntstatus import STATUS_SUCCESS, STATUS_MORE_PROCESSING_REQUIRED
from smb_share_enum.exceptions import StatusMismatchError, MessageIdMismatchError
from smb_share_enum.authentication import build_negotiate_message, parse_challenge_message, \
    build_authenticate_message
from smb_share_enum.messages.session_setup import SessionSetupResponse
from smb_share_enum.messages.tree_connect import TreeConnectRequest
from smb_share_enum.messages.create import CreateResponse
from smb_share_enum.messages.read import ReadResponse
from smb_share_enum.messages.ioctl import IoctlResponse
from smb_share_enum.rpc.pdu import parse_bind_ack
from smb_share_enum.rpc.srvsvc import ShareRecord, build_bind_request, build_net_share_enum_all_request, \
    parse_share_enum_response

LOG = getLogger(__name__)

IPC_SHARE_NAME = 'IPC$'


class SessionOrchestrator:
    """
    Drive the fixed sequence of requests that enumerates the shares of a server.

    Each step sends one request and waits for the one response that answers it. The first response whose status
    is not the expected one ends the enumeration.
    """

    def __init__(self, options: ConnectionOptions):
        self.options: ConnectionOptions = options
        self.session: Session = Session.from_options(options=options)
        self._transport: Optional[TCPIPTransport] = None

    async def _receive_frame(self) -> ResponseFrame:
        buffer = b''
        while True:
            buffer += await self._transport.read()
            try:
                return decode(data=buffer)
            except NotEnoughDataError:
                continue

    async def _request(
        self,
        command: Command,
        payload: bytes = b'',
        expected_status: int = STATUS_SUCCESS
    ) -> ResponseFrame:
        """
        Send a request and wait for its response.

        :param command: The command of the request.
        :param payload: The variable-length data of the request.
        :param expected_status: The status that the response must have.
        :return: The response frame.
        """

        message_id = self.session.message_id
        LOG.debug(f'Sending {command.name} request with message id {message_id}.')

        await self._transport.write(data=encode(command=command, session=self.session, payload=payload))
        response_frame = await self._receive_frame()

        if response_frame.message_id != message_id:
            raise MessageIdMismatchError(
                observed_message_id=response_frame.message_id,
                expected_message_id=message_id
            )

        if response_frame.status != expected_status:
            raise StatusMismatchError(observed_status=response_frame.status, expected_status=expected_status)

        return response_frame

    async def negotiate(self) -> None:
        await self._request(command=Command.SMB2_NEGOTIATE)
        self.session.advance(state=SessionState.NEGOTIATED)

    async def authenticate(self) -> None:
        challenge_frame = await self._request(
            command=Command.SMB2_SESSION_SETUP,
            payload=build_negotiate_message(host=self.session.host, domain=self.session.domain),
            expected_status=STATUS_MORE_PROCESSING_REQUIRED
        )
        self.session.establish_session_id(session_id=challenge_frame.session_id)

        challenge_message = parse_challenge_message(
            data=SessionSetupResponse.from_body(body=challenge_frame.body).security_buffer
        )

        await self._request(
            command=Command.SMB2_SESSION_SETUP,
            payload=build_authenticate_message(
                username=self.session.username,
                host=self.session.host,
                domain=self.session.domain,
                challenge_message=challenge_message,
                password=self.session.password
            )
        )
        self.session.advance(state=SessionState.AUTHENTICATED)

    async def connect_tree(self, share_name: str = IPC_SHARE_NAME) -> None:
        tree_connect_frame = await self._request(
            command=Command.SMB2_TREE_CONNECT,
            payload=TreeConnectRequest.encode_path(host=self.session.host, share_name=share_name)
        )
        self.session.establish_tree_id(tree_id=tree_connect_frame.tree_id)

    async def open_pipe(self, pipe_name: str = MS_SRVS_PIPE_NAME) -> None:
        create_frame = await self._request(
            command=Command.SMB2_CREATE,
            payload=pipe_name.encode(encoding='utf-16-le')
        )
        self.session.establish_file_id(file_id=CreateResponse.from_body(body=create_frame.body).file_id)

    async def bind(self) -> None:
        await self._request(
            command=Command.SMB2_WRITE,
            payload=build_bind_request(call_id=self.session.claim_rpc_call_id())
        )

        read_frame = await self._request(command=Command.SMB2_READ)
        bind_ack = parse_bind_ack(data=ReadResponse.from_body(body=read_frame.body).data)
        LOG.debug(f'Bound to the {MS_SRVS_PIPE_NAME} interface in association group {bind_ack.assoc_group_id}.')

        self.session.advance(state=SessionState.RPC_BOUND)

    async def net_share_enum(self) -> List[ShareRecord]:
        ioctl_frame = await self._request(
            command=Command.SMB2_IOCTL,
            payload=build_net_share_enum_all_request(
                call_id=self.session.claim_rpc_call_id(),
                host_name=self.session.host
            )
        )
        share_records = parse_share_enum_response(data=IoctlResponse.from_body(body=ioctl_frame.body).output)

        self.session.advance(state=SessionState.RESULT_RECEIVED)
        return share_records

    async def close_pipe(self) -> None:
        await self._request(command=Command.SMB2_CLOSE)

    async def enumerate_shares(self) -> List[ShareRecord]:
        """
        Connect to the server, enumerate its shares and disconnect.

        The connection is closed and the session is ended whether or not the enumeration succeeds.

        :return: The shares of the server.
        """

        transport = TCPIPTransport(
            address=self.session.host,
            port_number=self.session.port,
            timeout_in_seconds=self.options.timeout_in_seconds
        )

        try:
            async with transport:
                self._transport = transport

                await self.negotiate()
                await self.authenticate()
                await self.connect_tree()
                await self.open_pipe()
                await self.bind()
                share_records = await self.net_share_enum()
                await self.close_pipe()
        finally:
            self._transport = None
            self.session.close()

        LOG.info(f'Enumerated {len(share_records)} share(s) on {self.session.host}.')

        return share_records


async def enumerate_shares(connection: Union[str, ConnectionOptions, Mapping[str, Any]]) -> List[ShareRecord]:
    """
    Enumerate the shares of an SMB server.

    :param connection: A connection string of the form `smb://[[domain;]username[:password]@]host[:port]`, connection
        options, or a mapping of option names to values.
    :return: The shares of the server, in the order in which the server listed them.
    """

    return await SessionOrchestrator(options=ConnectionOptions.from_descriptor(descriptor=connection)).enumerate_shares()
