"""simpledeploy: push a local build to an FTP or SFTP host"""
__version__ = "1.0.0"
