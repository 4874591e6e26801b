"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- the quoting backend is not reachable from the current environment
- we want to test settlement flows end-to-end without external dependencies

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
- Mock clients should return data shaped according to quotepay.contracts

Switching to real:
Set QUOTEPAY_INTEGRATIONS_MODE=real (and QUOTEPAY_API_URL) so build_gateway()
returns clients/real_http/* implementations instead.
"""
