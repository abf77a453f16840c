from typing import Optional, FrozenSet

from msdsalgs.ntstatus_value import NTStatusValue

STATUS_SUCCESS: int = NTStatusValue.STATUS_SUCCESS.value
STATUS_PENDING: int = NTStatusValue.STATUS_PENDING.value
STATUS_MORE_PROCESSING_REQUIRED: int = NTStatusValue.STATUS_MORE_PROCESSING_REQUIRED.value

# The failures reported by name rather than by raw code.
KNOWN_ERROR_STATUSES: FrozenSet[NTStatusValue] = frozenset({
    NTStatusValue.STATUS_INVALID_PARAMETER,
    NTStatusValue.STATUS_ACCESS_DENIED,
    NTStatusValue.STATUS_NO_LOGON_SERVERS,
    NTStatusValue.STATUS_LOGON_FAILURE,
    NTStatusValue.STATUS_ACCOUNT_DISABLED,
    NTStatusValue.STATUS_NOT_SUPPORTED
})


def known_error_status_name(status: int) -> Optional[str]:
    """
    Map a raw NTSTATUS code to its symbolic name, if it is one of the known failure codes.

    :param status: A raw NTSTATUS code, as read from a response header.
    :return: The symbolic name of the status, or `None` if the status is not in the known table.
    """

    try:
        nt_status_value = NTStatusValue(status)
    except ValueError:
        return None

    return nt_status_value.name if nt_status_value in KNOWN_ERROR_STATUSES else None
