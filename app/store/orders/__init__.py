"""
Orders: the Order model, its state machine and order-level services.

    store.orders.models        Order, RefundMarker, generate_order_number
    store.orders.state_machine OrderStateMachine, TransitionResult
    store.orders.services      OrderService (manual refunds, shipping updates)
"""
