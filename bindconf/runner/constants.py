import socket

LOOPBACK_ADDR = "127.0.0.1"

# Logical device ids are resolved to f"{prefix}{n}" first, n starting at 1.
DEVICE_NAME_PREFIX = "eth"
FIRST_DEVICE_NUMBER = 1

# Linux values; older Pythons do not export SO_BINDTODEVICE.
SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)
IFNAMSIZ = 16

# Reuse option name -> socket option. The built-in catalog expects SO_REUSEPORT.
REUSE_OPTIONS = {
    "reuseport": getattr(socket, "SO_REUSEPORT", 15),
    "reuseaddr": socket.SO_REUSEADDR,
}
DEFAULT_REUSE_OPTION = "reuseport"

# /dev/net/tun
TUN_DEVICE_PATH = "/dev/net/tun"
TUNSETIFF = 0x400454CA
IFF_TUN = 0x0001
# struct ifreq is 40 bytes on 64-bit Linux: 16 byte name + 24 byte union.
IFREQ_FORMAT = "16sH22x"

STATUS_PASS = "pass"
STATUS_FAIL = "fail"
STATUS_SKIP = "skip"
STATUS_ERROR = "error"
