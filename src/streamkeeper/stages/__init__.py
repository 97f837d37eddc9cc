"""
Reconciliation stages, leaves first:

classify -> target -> plan -> apply

classify/target/plan are pure and never touch the network.
"""
