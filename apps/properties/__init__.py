"""Properties app package.

Property listings as seen by the reservation engine: owner, nightly
rate, capacity, stay limits, cancellation cutoff and fee rules.
"""
