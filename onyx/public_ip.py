"""Discovery of the caller's public IP through plain-text lookup services."""

import requests

from onyx import output
from onyx.errors import PublicIPError

PUBLIC_IP_SOURCES = [
    'https://api.ipify.org?format=text',
    'https://api64.ipify.org/?format=text',
    'https://www.ipify.org',
    'https://myexternalip.com/raw',
]


def fetch_ip(sources=None, timeout=10):
    """Ask each source in turn for the caller's public IP.

    Args:
        sources (list): URLs answering with the bare IP address
        timeout (float): Per-request timeout in seconds

    Returns:
        str: The first non-empty answer, or '' if every source failed
    """
    for source in sources or PUBLIC_IP_SOURCES:
        output.info('Getting IP address from %s', output.underline(source))
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            output.error('Unable to get ip from %s. Error: %s', output.underline(source), e)
            continue

        ip = response.text.strip()
        if ip:
            return ip

        output.error('Empty response from %s', output.underline(source))

    return ''


def get_public_cidr(sources=None, timeout=10):
    """Return the caller's public IP as a /32 CIDR.

    Raises:
        PublicIPError: If no source returned an address
    """
    ip = fetch_ip(sources, timeout)
    if not ip:
        raise PublicIPError('Unable to determine ip')

    cidr = f"{ip}/32"
    output.success('Authorizing for CIDR: %s', cidr)
    return cidr
