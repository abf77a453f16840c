from smb_share_enum.client import enumerate_shares, SessionOrchestrator
from smb_share_enum.options import ConnectionOptions
from smb_share_enum.rpc.srvsvc import ShareRecord, ShareType
