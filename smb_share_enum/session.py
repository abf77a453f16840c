from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, ClassVar, Tuple
from logging import getLogger

from smb_share_enum.options import ConnectionOptions
from smb_share_enum.structures.file_id import FileId
from smb_share_enum.structures.session_state import SessionState
from smb_share_enum.exceptions import IdentifierNotEstablishedError, InvalidStateTransitionError

LOG = getLogger(__name__)


@dataclass
class Session:
    """
    The state of a single share enumeration.

    The identifiers returned by the server are only readable from the step that establishes them until the session
    is closed; any other access is a programming error and raises `SessionStateError`.
    """

    STATE_SEQUENCE: ClassVar[Tuple[SessionState, ...]] = tuple(SessionState)

    host: str
    port: int
    username: str
    password: str
    domain: str
    timeout: int

    message_id: int = 0
    rpc_call_id: int = 0
    state: SessionState = SessionState.CONNECTING

    _session_id: Optional[bytes] = field(default=None, repr=False)
    _tree_id: Optional[int] = field(default=None, repr=False)
    _file_id: Optional[FileId] = field(default=None, repr=False)

    @classmethod
    def from_options(cls, options: ConnectionOptions) -> Session:
        return cls(
            host=options.host,
            port=options.port,
            username=options.username,
            password=options.password,
            domain=options.domain,
            timeout=options.timeout
        )

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def _reached(self, state: SessionState) -> bool:
        return not self.is_closed and self.STATE_SEQUENCE.index(self.state) >= self.STATE_SEQUENCE.index(state)

    @property
    def session_id(self) -> bytes:
        if self._session_id is None or not self._reached(SessionState.AUTH_CHALLENGED):
            raise IdentifierNotEstablishedError(identifier_name='session_id', state=self.state)
        return self._session_id

    @property
    def tree_id(self) -> int:
        if self._tree_id is None or not self._reached(SessionState.TREE_CONNECTED):
            raise IdentifierNotEstablishedError(identifier_name='tree_id', state=self.state)
        return self._tree_id

    @property
    def file_id(self) -> FileId:
        if self._file_id is None or not self._reached(SessionState.PIPE_OPEN):
            raise IdentifierNotEstablishedError(identifier_name='file_id', state=self.state)
        return self._file_id

    @property
    def header_session_id(self) -> bytes:
        """The session id to put in a request header; zero before the server has assigned one."""
        return self.session_id if self._session_id is not None else bytes(8)

    @property
    def header_tree_id(self) -> int:
        """The tree id to put in a request header; zero before the tree connect."""
        return self.tree_id if self._tree_id is not None else 0

    def advance(self, state: SessionState) -> None:
        """
        Move the session to the state following its current one.

        :param state: The state to move to. Must be the immediate successor of the current state.
        :return: None
        """

        if self.is_closed or self.STATE_SEQUENCE.index(state) != self.STATE_SEQUENCE.index(self.state) + 1:
            raise InvalidStateTransitionError(observed_state=self.state, requested_state=state)

        LOG.debug(f'Session state {self.state.name} -> {state.name}.')
        self.state = state

    def establish_session_id(self, session_id: bytes) -> None:
        self.advance(state=SessionState.AUTH_CHALLENGED)
        self._session_id = session_id

    def establish_tree_id(self, tree_id: int) -> None:
        self.advance(state=SessionState.TREE_CONNECTED)
        self._tree_id = tree_id

    def establish_file_id(self, file_id: FileId) -> None:
        self.advance(state=SessionState.PIPE_OPEN)
        self._file_id = file_id

    def claim_message_id(self) -> int:
        """
        Claim the message id of the next request, incrementing the counter.

        :return: The message id to be sent.
        """

        if self.is_closed:
            raise InvalidStateTransitionError(observed_state=self.state, requested_state='a new request')

        message_id = self.message_id
        self.message_id += 1
        return message_id

    def claim_rpc_call_id(self) -> int:
        call_id = self.rpc_call_id
        self.rpc_call_id += 1
        return call_id

    def close(self) -> None:
        if not self.is_closed:
            LOG.debug(f'Session state {self.state.name} -> {SessionState.CLOSED.name}.')
        self.state = SessionState.CLOSED
