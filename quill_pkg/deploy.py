"""
Deploy the built site over FTP and purge the CDN cache afterwards.
"""

import ftplib
import logging
import os
from dataclasses import dataclass

import requests

logger = logging.getLogger('quill.deploy')


class DeployError(Exception):
    """Raised when uploading or purging fails."""


@dataclass
class FtpTarget:
    hostname: str
    username: str
    password: str
    destination: str = ''

    @classmethod
    def from_env(cls, destination='', environ=None):
        """Read credentials from FTP_HOSTNAME, FTP_USERNAME and FTP_PASSWORD."""
        environ = os.environ if environ is None else environ
        missing = [name for name in ('FTP_HOSTNAME', 'FTP_USERNAME', 'FTP_PASSWORD')
                   if not environ.get(name)]
        if missing:
            raise DeployError(f"Missing environment variables: {', '.join(missing)}")
        return cls(
            hostname=environ['FTP_HOSTNAME'],
            username=environ['FTP_USERNAME'],
            password=environ['FTP_PASSWORD'],
            destination=destination or '',
        )


def _remote_join(*parts):
    return '/'.join(part.strip('/') for part in parts if part and part != '.')


def clear_remote(ftp, path=''):
    """Delete everything below ``path`` on the server, keeping ``path`` itself."""
    for name, facts in ftp.mlsd(path or '.'):
        if facts.get('type') in ('cdir', 'pdir') or name in ('.', '..'):
            continue
        remote_path = _remote_join(path, name)
        if facts.get('type') == 'dir':
            clear_remote(ftp, remote_path)
            ftp.rmd(remote_path)
        else:
            ftp.delete(remote_path)
        logger.debug(f"Removed remote {remote_path}")


def _ensure_remote_dir(ftp, path):
    try:
        ftp.mkd(path)
    except ftplib.error_perm:
        # already exists
        pass


def upload_tree(ftp, source):
    """Upload a local directory tree into the server's current directory."""
    uploaded = 0
    for root, dirs, files in os.walk(source):
        dirs.sort()
        rel_dir = os.path.relpath(root, source).replace(os.sep, '/')
        if rel_dir != '.':
            _ensure_remote_dir(ftp, rel_dir)
        for name in sorted(files):
            remote_path = _remote_join(rel_dir, name)
            with open(os.path.join(root, name), 'rb') as f:
                ftp.storbinary(f'STOR {remote_path}', f)
            logger.debug(f"Uploaded {remote_path}")
            uploaded += 1
    return uploaded


def upload_directory(source, target, clear_destination=True, ftp_factory=ftplib.FTP):
    """Upload ``source`` to the FTP target, optionally clearing it first.

    Returns:
        Number of files uploaded.

    Raises:
        DeployError: source is missing or any FTP operation fails.
    """
    if not os.path.isdir(source):
        raise DeployError(f"Deploy source not found: {source}")

    try:
        with ftp_factory(target.hostname) as ftp:
            ftp.login(target.username, target.password)
            if target.destination:
                ftp.cwd(target.destination)
            if clear_destination:
                clear_remote(ftp)
            uploaded = upload_tree(ftp, source)
    except ftplib.all_errors as e:
        raise DeployError(f"FTP upload to {target.hostname} failed: {e}")

    logger.info(f"Uploaded {uploaded} files to {target.hostname}")
    return uploaded


def purge_cache(domain, secret, endpoint, session=None, timeout=30):
    """Ask the purge endpoint to drop the CDN cache of ``domain``.

    Raises:
        DeployError: the request fails or the endpoint does not report success.
    """
    session = session or requests.Session()
    try:
        response = session.post(
            endpoint,
            params={'domain': domain},
            headers={'authentication': secret or ''},
            timeout=timeout,
        )
        response.raise_for_status()
        body = response.json()
    except requests.RequestException as e:
        raise DeployError(f"Could not purge cache of {domain}: {e}")
    except ValueError as e:
        raise DeployError(f"Could not purge cache of {domain}: invalid response ({e})")

    if not isinstance(body, dict) or not body.get('responseOk'):
        raise DeployError(f"Could not purge cache of {domain}: {body}")

    logger.info(f"Successfully purged cache of {domain}")


def deploy(settings, environ=None, ftp_factory=ftplib.FTP, session=None):
    """Upload the built site and purge the cache when a domain is configured."""
    environ = os.environ if environ is None else environ
    source = settings.get('deploy_source') or settings['output']
    target = FtpTarget.from_env(settings.get('ftp_destination', ''), environ=environ)

    upload_directory(source, target, clear_destination=True, ftp_factory=ftp_factory)

    domain = settings.get('purge_domain')
    if domain:
        endpoint = settings.get('purge_endpoint')
        if not endpoint:
            raise DeployError("purge_domain is set but purge_endpoint is missing")
        purge_cache(domain, environ.get('PURGE_SECRET'), endpoint, session=session)
