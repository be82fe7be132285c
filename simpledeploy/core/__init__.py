"""Core functionality (remote adapters and filesystem)"""
from .remote import RemoteAdapter, RemoteStat, FtpAdapter, SftpAdapter, create_adapter
from .filesystem import RemoteFilesystem, Mounts

__all__ = [
    "RemoteAdapter", "RemoteStat", "FtpAdapter", "SftpAdapter", "create_adapter",
    "RemoteFilesystem", "Mounts",
]
