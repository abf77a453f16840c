from enum import Enum, auto


class SessionState(Enum):
    CONNECTING = auto()
    NEGOTIATED = auto()
    AUTH_CHALLENGED = auto()
    AUTHENTICATED = auto()
    TREE_CONNECTED = auto()
    PIPE_OPEN = auto()
    RPC_BOUND = auto()
    RESULT_RECEIVED = auto()
    CLOSED = auto()
