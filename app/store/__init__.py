"""
Store app: order lifecycle and wallet refund reconciliation.

Components:
    - store.orders: Order model, OrderStateMachine, OrderService
    - store.wallet: Wallet/WalletTransaction ledger (WalletLedger)
    - store.refunds: RefundPolicy and RefundCoordinator
    - store.workers: Celery tasks replaying unreconciled refunds

Flow:
    OrderStateMachine.transition(order, "refunded")
        -> order_transitioned event (store.events)
        -> RefundCoordinator.on_order_transitioned
        -> RefundPolicy.evaluate
        -> WalletLedger.credit + refund marker compare-and-set
        -> refund_processed event (after commit)

Usage:
    from store.orders.state_machine import OrderStateMachine
    from store.state_machines import OrderStatus

    result = OrderStateMachine.transition(order, OrderStatus.REFUNDED)
    for reconciliation in result.reconciliations:
        if reconciliation.failed:
            alert(reconciliation)
"""
