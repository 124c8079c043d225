"""
SNMP polling module.

Architecture:
    AsyncSnmpEngine / SnmpSession — pysnmp async wrapper (one session per device)
    MockSnmpEngine               — same interface, generated values
    decode() / evaluate()        — varbind decoding and transform expressions
    PollingSession               — per-device fetch cycle with reconnect
"""
