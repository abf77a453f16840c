from typing import Any, Optional


class ShareEnumerationError(Exception):
    pass


class StatusMismatchError(ShareEnumerationError):
    def __init__(self, observed_status: int, expected_status: int):
        from smb_share_enum.ntstatus import known_error_status_name

        self.observed_status: int = observed_status
        self.expected_status: int = expected_status
        self.status_name: Optional[str] = known_error_status_name(status=observed_status)

        super().__init__(
            self.status_name
            or f'NTSTATUS 0x{observed_status:x}. Expected: 0x{expected_status:x}'
        )


class TransportError(ShareEnumerationError):
    pass


class ConnectionTimeoutError(TransportError):
    def __init__(self, timeout_in_seconds: float):
        super().__init__(f'Connection timeout ({timeout_in_seconds} seconds without data).')
        self.timeout_in_seconds: float = timeout_in_seconds


class UnexpectedConnectionEndError(TransportError):
    def __init__(self):
        super().__init__('Connection unexpectedly ended.')


class MalformedMessageError(ShareEnumerationError):
    def __init__(
        self,
        message_header: str,
        observed_value: Any,
        expected_value: Any,
        expected_label: str = 'Expected'
    ):
        super().__init__(
            f'{message_header} '
            f'Observed {observed_value}. '
            f'{expected_label} {expected_value}.'
        )

        self.observed_value: Any = observed_value
        self.expected_value: Any = expected_value


class MalformedChallengeMessageError(MalformedMessageError):
    pass


class MalformedRpcResponseError(MalformedMessageError):
    pass


class MessageIdMismatchError(MalformedMessageError):
    def __init__(self, observed_message_id: int, expected_message_id: int):
        super().__init__(
            message_header='The response does not correlate with the request.',
            observed_value=observed_message_id,
            expected_value=expected_message_id
        )


class RpcFaultError(ShareEnumerationError):
    def __init__(self, fault_status: int):
        super().__init__(f'The RPC call failed with fault status 0x{fault_status:08x}.')
        self.fault_status: int = fault_status


class InvalidConnectionStringError(ValueError):
    def __init__(self, connection_string: str):
        super().__init__('Invalid smb url')
        self.connection_string: str = connection_string


class MissingHostError(ValueError):
    def __init__(self):
        super().__init__('No host provided')


class SessionStateError(RuntimeError):
    pass


class IdentifierNotEstablishedError(SessionStateError):
    def __init__(self, identifier_name: str, state: Any):
        super().__init__(f'`{identifier_name}` is not established in session state {state}.')
        self.identifier_name: str = identifier_name
        self.state: Any = state


class InvalidStateTransitionError(SessionStateError):
    def __init__(self, observed_state: Any, requested_state: Any):
        super().__init__(f'Cannot transition from session state {observed_state} to {requested_state}.')
        self.observed_state: Any = observed_state
        self.requested_state: Any = requested_state
