"""
Real HTTP integration clients.

These clients talk to the quoting backend over REST:
- api_client.ApiClient: timeout, bearer token, retry, envelope unwrapping
- payments.HttpPaymentGateway: the PaymentGateway implementation

Important:
- Must implement the same interface as the mock clients
- Must return data shaped according to quotepay.contracts

Switching:
The selection of mock vs real clients happens in quotepay.integrations.build_gateway only.
"""
