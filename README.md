# poserp

`poserp` is the back-office core of a point-of-sale system for a small chain
of shops. It keeps:

- **branch finances** – cash, bank, terminal and mobile-app balances, income,
  expenses and debt of each branch;
- **transactions** – sales, supplier payments, rent, salaries and other
  operations, with validation of payment methods, transaction types and
  initiator types;
- **suppliers** – contact data, a ledger of transactions and a balance;
- **journals, products, customers and BNPL** (buy now, pay later) records as
  data classes;
- **sales sessions** – shopping carts kept in Redis for one hour;
- **an activity log** – who did what, from which address, with what status.

Stored data lives in MongoDB (through `pymongo`); sales sessions live in Redis
(through `redis`).

## Modules

| Module | What it holds |
| --- | --- |
| `poserp.utils` | `remove_element`, `replace_element`, `get_time_zone` (Asia/Tashkent, UTC as fallback) |
| `poserp.output` | `ErrorInfo`, `ApiResponse`, `new_output`, `new_error`, `new_errors`, `return_error` |
| `poserp.finance` | `TransactionBase`, `Transaction`, the `TransactionType`, `InitiatorType` and `PaymentMethod` enums, validators, `Balance`, `Finance`, `BranchFinance` |
| `poserp.records` | `Branch`, `Journal`, journal inputs and query parameters, `Supplier`, `User` |
| `poserp.catalog` | `Product` and its parts, `Customer`, `BNPL`, `NewBNPLInput` |
| `poserp.sales_session` | `SalesSession` and the functions that keep it in Redis |
| `poserp.database` | `connect_database`, `connect_cache`, `start_transaction` |
| `poserp.activity` | `ActivityType`, `Activity`, `RequestContext`, `log_activity`, `log_activity_with_context`, `record_activity` |
| `poserp.auth` | `Middlewares.authorize`, `AuthenticationError` |
| `poserp.sales_transactions` | sales transactions and the balance updates they cause |
| `poserp.supplier_ledger` | supplier transactions and their effect on supplier and branch finances |
| `poserp.sales_handlers` | `SalesSessionController` |
| `poserp.suppliers` | `SuppliersController`, `SupplierQuery` |
| `poserp.transactions` | `TransactionsController`, `build_transaction_filter`, `create_transaction` |
| `poserp.logging_setup` | `setup_logger`, `log_request`, `LokiClient`, `push_to_loki` |

## Validating input

```python
from poserp.finance import ValidationError, validate_payment_method, validate_transaction_type

validate_payment_method("cash")          # returns PaymentMethod.CASH
validate_transaction_type("credit")      # returns TransactionType.CREDIT

try:
    validate_payment_method("barter")
except ValidationError as exc:
    print(exc)   # invalid payment method: barter
```

`PaymentMethod.UNDEFINED` exists but is not accepted by
`validate_payment_method`; `InitiatorType.BNPL` is likewise not accepted by
`validate_initiator_type`. `TransactionQueryParams.validate()` checks each of
its choice fields that is set.

## Building a transaction

```python
from poserp.finance import InitiatorType, TransactionType, new_transaction, new_transaction_base

base = new_transaction_base(150_000, "Morning sales", TransactionType.CREDIT)
transaction = new_transaction(base, InitiatorType.SALES, "branch-1")
document = transaction.to_document()   # ready to insert into MongoDB
```

Every new transaction gets a fresh UUID and creation and update times in the
Asia/Tashkent time zone (UTC when that zone is unavailable).

## Response envelope

Handlers return an `ApiResponse` holding a JSON-ready `body` and an HTTP
`status`. The body is built by `new_output`:

```python
from poserp.output import new_error, new_output

new_output([], new_error("branch not found", 500))
# {"data": [], "error": [{"message": "branch not found", "code": 500}]}

new_output({"message": "ok"})
# {"data": {"message": "ok"}, "error": None}
```

`return_error(exc)` wraps an exception as a 500 response.

## Connecting

```python
from poserp.database import connect_cache, connect_database, start_transaction

client = connect_database("mongodb://localhost:27017", 10, 1)

password = "password"
cache = connect_cache("localhost", 6379, password, 0)

with start_transaction(client) as session:
    ...   # committed on normal exit, aborted if the block raises
```

Both connect functions ping the server and let the error through if it does
not answer.

## Controllers

The controllers take a `pymongo` database and work on its `transactions`,
`finance`, `suppliers`, `products`, `activities` and `users` collections:

```python
from poserp.activity import RequestContext
from poserp.sales_transactions import SalesTransactionsController

db = client["shop"]
sales = SalesTransactionsController(db)
response = sales.create_sales_transaction(
    RequestContext(ip="127.0.0.1", user="cashier"),
    "branch-1",
    {"amount": 50_000, "description": "Sale", "payment_method": "cash"},
)
response.status   # 201 on success
```

- `SalesTransactionsController` stores a sale as a credit and adds its amount
  to the branch balance of its payment method (online payments and online
  transfers go to `mobile_apps`); deleting a sale takes the amount back off.
  Both record an activity.
- `SuppliersController` lists suppliers by any non-empty filter (a branch may
  be given by id or name), creates, updates (non-empty fields only) and
  deletes suppliers, and records supplier transactions. A credit (a payment to
  the supplier) raises the supplier's balance and lowers the branch's debt and
  the balance it was paid from; a debit (a delivery) raises the branch's debt.
- `TransactionsController` returns pages of a branch's transactions, newest
  first (page 1 and 10 per page by default). A maximum amount replaces a
  minimum one and a minimum date replaces a maximum one, so each range keeps
  one bound. It also gets, updates and deletes single transactions and lists
  the accepted initiator types, transaction types and payment methods.
- `SalesSessionController` opens a session for a branch that has a finance
  record, adds a product at the price of each branch it is stocked in, reads,
  lists and deletes sessions. Closing a session totals price × quantity,
  removes it from Redis and returns the total.
- `Middlewares(db).authorize(context, username)` looks the user up and puts
  its name on the request context, raising `AuthenticationError` if it is not
  found.

## Sales sessions

```python
from poserp.sales_session import get_sales_session, new_sales_session

session = new_sales_session("branch-1", cache)
session.add_product_item("product-1", 2, 25_000, cache)
same = get_sales_session(session.id, cache)
```

Adding a product already in the session raises its quantity and keeps the
price it was first added with. Each save keeps the session for one hour.
`get_sales_session` raises `SessionNotFound` for a missing session.

## Logging

`setup_logger(environment=None, log_path="./tmp/application.log")` sends the
`poserp` loggers to the console and, as JSON lines, to the file (creating its
directory). `log_request(...)` logs a handled request, skipping
`/favicon.ico` and 404 answers. `LokiClient` queues JSON log lines by level
and pushes them to a Loki endpoint with `flush()`, or in the background with
`run(stop_event)` when the interval passes or the batch grows too big.

## What this package does not do

It has no HTTP server, routes or command: the controllers return
`ApiResponse` values for a web framework of your choice to send. It does not
read configuration files, log users in or issue tokens, and it has no handlers
for journals, products, customers, BNPL records or product images; those exist
here only as data classes.