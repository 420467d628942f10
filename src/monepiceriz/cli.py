"""Command-line interface for monepiceriz."""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from . import __version__
from .cart import CartAggregator
from .errors import MonepicerizError, StoreNotFoundError
from .geo import format_distance
from .location import StaticLocationProvider
from .models import Coordinate, Product
from .phone import (
    are_phone_numbers_equal,
    format_phone_for_display,
    get_operator_info,
    validate_ivorian_phone,
)
from .selection import StoreSelectionCache
from .storage import JsonFileStorage
from .stores import StoreResolver, store_display_name


def get_storage(args: argparse.Namespace) -> JsonFileStorage:
    """Get the JSON storage for --data-dir (or the default data directory)."""
    return JsonFileStorage(Path(args.data_dir) if args.data_dir else None)


def get_selection(
    args: argparse.Namespace, location: Coordinate | None = None
) -> StoreSelectionCache:
    """Get the persisted store selection, with a fixed position as its location source."""
    provider = StaticLocationProvider(location) if location is not None else None
    return StoreSelectionCache(storage=get_storage(args), location_provider=provider)


def _coordinate(lat: float | None, lon: float | None) -> Coordinate | None:
    if lat is None and lon is None:
        return None
    if lat is None or lon is None:
        raise MonepicerizError("Both --lat and --lon are required")
    return Coordinate(latitude=lat, longitude=lon)


# --- stores ---


def cmd_stores_list(args: argparse.Namespace) -> int:
    """List stores, closest first when a position is given."""
    try:
        resolver = StoreResolver()
        location = _coordinate(args.lat, args.lon)

        if location is None:
            if args.json:
                print(json.dumps([s.to_dict() for s in resolver.stores], indent=2, ensure_ascii=False))
                return 0
            for store in resolver.stores:
                print(f"{store.code:<10} {store.name}  {store.address}")
            return 0

        distances = resolver.stores_with_distances(location)
        if args.json:
            print(json.dumps([sd.to_dict() for sd in distances], indent=2, ensure_ascii=False))
            return 0
        for sd in distances:
            delivers = "delivers" if sd.distance <= sd.store.delivery_radius else "out of range"
            print(f"{sd.store.code:<10} {store_display_name(sd)}  [{delivers}]")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_stores_nearest(args: argparse.Namespace) -> int:
    """Show the store nearest to a position."""
    resolver = StoreResolver()
    location = Coordinate(latitude=args.lat, longitude=args.lon)
    nearest = resolver.nearest_store(location)
    within = resolver.is_within_delivery_radius(location, nearest.store.code)

    if args.json:
        data = nearest.to_dict()
        data["within_delivery_radius"] = within
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return 0

    print(f"Nearest store: {nearest.store.code} ({format_distance(nearest.distance)})")
    print(f"  {nearest.store.name}, {nearest.store.address}")
    print(f"  Delivery: {'available' if within else 'not available'}")
    return 0


def cmd_stores_open(args: argparse.Namespace) -> int:
    """Check whether a store is open."""
    try:
        resolver = StoreResolver()
        store = resolver.get_store(args.code)
        if store is None:
            raise StoreNotFoundError(args.code)

        at = datetime.fromisoformat(args.at) if args.at else None
        is_open = resolver.is_store_open(store.code, at)
        hours = resolver.opening_hours(store.code, at) if at else resolver.today_opening_hours(store.code)

        status = "open" if is_open else "closed"
        print(f"{store.name}: {status}")
        if hours:
            print(f"  Hours: {hours.open}-{hours.close}")
        return 0

    except ValueError as e:
        print(f"Error: Invalid --at timestamp ({e})", file=sys.stderr)
        return 1
    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- phone ---


def cmd_phone_validate(args: argparse.Namespace) -> int:
    """Validate a phone number. Exit code 1 when invalid."""
    result = validate_ivorian_phone(args.number)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 0 if result.is_valid else 1

    if not result.is_valid:
        print(f"Invalid: {result.error}")
        return 1

    assert result.formatted is not None and result.operator is not None
    info = get_operator_info(result.operator)
    print(f"Valid ({result.format.value})")
    print(f"  International: {result.formatted.international}")
    print(f"  National: {result.formatted.national}")
    print(f"  Display: {result.formatted.display}")
    print(f"  Operator: {info['name']}")
    return 0


def cmd_phone_format(args: argparse.Namespace) -> int:
    """Print a phone number formatted for display."""
    print(format_phone_for_display(args.number))
    return 0


def cmd_phone_equals(args: argparse.Namespace) -> int:
    """Compare two phone numbers. Exit code 0 if equal, 1 otherwise."""
    equal = are_phone_numbers_equal(args.first, args.second)
    print("equal" if equal else "different")
    return 0 if equal else 1


# --- select ---


def cmd_select_show(args: argparse.Namespace) -> int:
    """Show the current store selection."""
    try:
        cache = get_selection(args)

        if args.json:
            print(json.dumps(cache.state.to_dict(), indent=2))
            return 0

        print(f"Selected store: {cache.selected_store}")
        if cache.nearest_store:
            print(f"Nearest store: {cache.nearest_store}")
        if cache.user_location:
            loc = cache.user_location
            print(f"Location: {loc.latitude}, {loc.longitude}")
            print(f"Updated: {cache.last_location_update}")
            distance = cache.distance_to_selected_store()
            if distance is not None:
                print(f"Distance to store: {format_distance(distance)}")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_select_set(args: argparse.Namespace) -> int:
    """Select a store by code."""
    try:
        cache = get_selection(args)
        if not cache.set_selected_store(args.code):
            raise StoreNotFoundError(args.code)
        print(f"Selected store: {args.code}")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_select_locate(args: argparse.Namespace) -> int:
    """Record a position and select the nearest store."""
    try:
        cache = get_selection(args, Coordinate(latitude=args.lat, longitude=args.lon))
        coordinate = asyncio.run(cache.request_location())
        if coordinate is None:
            print(f"Error: {cache.location_error}", file=sys.stderr)
            return 1

        distance = cache.distance_to_selected_store()
        print(f"Selected store: {cache.selected_store} ({format_distance(distance or 0.0)})")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_select_check(args: argparse.Namespace) -> int:
    """Check whether the selection is stale. Exit code 2 if it should be updated."""
    try:
        cache = get_selection(args, _coordinate(args.lat, args.lon))
        check = asyncio.run(cache.check_store_update())

        if args.json:
            print(json.dumps(
                {
                    "should_update": check.should_update,
                    "reason": check.reason,
                    "distance_km": check.distance_km,
                },
                indent=2,
            ))
        elif check.should_update:
            line = f"Update needed ({check.reason})"
            if check.distance_km is not None:
                line += f": moved {format_distance(check.distance_km)}"
            print(line)
        else:
            print("Store selection is still valid")

        return 2 if check.should_update and args.fail_on_stale else 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_select_reset(args: argparse.Namespace) -> int:
    """Reset the store selection."""
    cache = get_selection(args)
    cache.reset()
    print(f"Store selection reset to {cache.selected_store}")
    return 0


# --- cart ---


def _print_cart(cart: CartAggregator, as_json: bool) -> None:
    view = cart.get_cart()
    if as_json:
        print(json.dumps(view.to_dict(), indent=2, ensure_ascii=False))
        return

    if not view.lines:
        print("Cart is empty.")
        return

    print(f"Cart ({view.item_count} item(s)):")
    for line in view.lines:
        name = line.product.name or line.product.id
        print(f"  {line.quantity} x {name}  {line.product.effective_price} = {line.line_total}")
    print(f"Subtotal: {view.subtotal}")
    print(f"Delivery: {view.delivery_fee}")
    print(f"Preparation: {view.preparation_fee}")
    print(f"Total: {view.total}")


def _parse_price(value: str) -> Decimal:
    """Parse a finite, non-negative price."""
    try:
        price = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid price: {value}")
    if not price.is_finite() or price < 0:
        raise ValueError(f"Invalid price: {value}")
    return price


def cmd_cart_show(args: argparse.Namespace) -> int:
    """Show the cart."""
    _print_cart(CartAggregator(storage=get_storage(args)), args.json)
    return 0


def cmd_cart_add(args: argparse.Namespace) -> int:
    """Add a product to the cart."""
    try:
        try:
            price = _parse_price(args.price)
            promo_price = _parse_price(args.promo_price) if args.promo_price is not None else None
        except ValueError:
            print("Error: prices must be non-negative numbers", file=sys.stderr)
            return 1

        product = Product(
            id=args.product_id,
            price=price,
            name=args.name or "",
            is_promo=promo_price is not None,
            promo_price=promo_price,
        )
        cart = CartAggregator(storage=get_storage(args))
        cart.add_item(product, args.quantity)
        print(f"Added {args.quantity} x {product.name or product.id}")
        print(f"  In cart: {cart.item_quantity(product.id)}")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_cart_update(args: argparse.Namespace) -> int:
    """Set a product's quantity (0 removes it)."""
    try:
        cart = CartAggregator(storage=get_storage(args))
        cart.update_quantity(args.product_id, args.quantity)
        print(f"{args.product_id}: {cart.item_quantity(args.product_id)}")
        return 0

    except MonepicerizError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_cart_remove(args: argparse.Namespace) -> int:
    """Remove a product from the cart."""
    cart = CartAggregator(storage=get_storage(args))
    cart.remove_item(args.product_id)
    print(f"Removed {args.product_id}")
    return 0


def cmd_cart_clear(args: argparse.Namespace) -> int:
    """Empty the cart."""
    cart = CartAggregator(storage=get_storage(args))
    cart.clear_cart()
    print("Cart cleared")
    return 0


# --- serve ---


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    storage = get_storage(args)
    print("Starting monepiceriz API server...")
    print(f"Data directory: {storage.data_dir}")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    print()

    # When reload is enabled, uvicorn requires the app as an import string
    app_target = "monepiceriz.api:app" if args.reload else None
    if app_target is None:
        from .api import create_app

        app_target = create_app(storage=storage)

    uvicorn.run(
        app_target,
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1,  # Single worker: state files are last-writer-wins
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="monepiceriz",
        description="Store selection, cart and phone tools for MonEpice&Riz.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir", help="State directory (default: $MONEPICERIZ_DATA_DIR or ~/.monepiceriz)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # stores
    stores_parser = subparsers.add_parser("stores", help="Query the store table")
    stores_subparsers = stores_parser.add_subparsers(dest="stores_command")

    stores_list_parser = stores_subparsers.add_parser("list", help="List stores")
    stores_list_parser.add_argument("--lat", type=float, help="User latitude")
    stores_list_parser.add_argument("--lon", type=float, help="User longitude")
    stores_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    stores_nearest_parser = stores_subparsers.add_parser(
        "nearest", help="Find the store nearest to a position"
    )
    stores_nearest_parser.add_argument("lat", type=float, help="Latitude")
    stores_nearest_parser.add_argument("lon", type=float, help="Longitude")
    stores_nearest_parser.add_argument("--json", action="store_true", help="Output as JSON")

    stores_open_parser = stores_subparsers.add_parser("open", help="Check opening status")
    stores_open_parser.add_argument("code", help="Store code (e.g. COCODY)")
    stores_open_parser.add_argument("--at", help="ISO 8601 time to check (default: now)")

    # phone
    phone_parser = subparsers.add_parser("phone", help="Ivorian phone number tools")
    phone_subparsers = phone_parser.add_subparsers(dest="phone_command")

    phone_validate_parser = phone_subparsers.add_parser("validate", help="Validate a number")
    phone_validate_parser.add_argument("number", help="Phone number")
    phone_validate_parser.add_argument("--json", action="store_true", help="Output as JSON")

    phone_format_parser = phone_subparsers.add_parser("format", help="Format for display")
    phone_format_parser.add_argument("number", help="Phone number")

    phone_equals_parser = phone_subparsers.add_parser("equals", help="Compare two numbers")
    phone_equals_parser.add_argument("first", help="First phone number")
    phone_equals_parser.add_argument("second", help="Second phone number")

    # select
    select_parser = subparsers.add_parser("select", help="Manage the selected store")
    select_subparsers = select_parser.add_subparsers(dest="select_command")

    select_show_parser = select_subparsers.add_parser("show", help="Show the selection")
    select_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    select_set_parser = select_subparsers.add_parser("set", help="Select a store")
    select_set_parser.add_argument("code", help="Store code")

    select_locate_parser = select_subparsers.add_parser(
        "locate", help="Record a position and select the nearest store"
    )
    select_locate_parser.add_argument("lat", type=float, help="Latitude")
    select_locate_parser.add_argument("lon", type=float, help="Longitude")

    select_check_parser = select_subparsers.add_parser(
        "check", help="Check whether the selection should be updated"
    )
    select_check_parser.add_argument("--lat", type=float, help="Current latitude")
    select_check_parser.add_argument("--lon", type=float, help="Current longitude")
    select_check_parser.add_argument("--json", action="store_true", help="Output as JSON")
    select_check_parser.add_argument(
        "--fail-on-stale", action="store_true",
        help="Exit with code 2 if the selection should be updated"
    )

    select_subparsers.add_parser("reset", help="Reset to the default store")

    # cart
    cart_parser = subparsers.add_parser("cart", help="Manage the cart")
    cart_subparsers = cart_parser.add_subparsers(dest="cart_command")

    cart_show_parser = cart_subparsers.add_parser("show", help="Show the cart")
    cart_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    cart_add_parser = cart_subparsers.add_parser("add", help="Add a product")
    cart_add_parser.add_argument("product_id", help="Product ID")
    cart_add_parser.add_argument("price", help="Unit price")
    cart_add_parser.add_argument("--promo-price", help="Promotional price (marks the product on promotion)")
    cart_add_parser.add_argument("--name", "-n", help="Product name")
    cart_add_parser.add_argument("--quantity", "-q", type=int, default=1, help="Quantity (default: 1)")

    cart_update_parser = cart_subparsers.add_parser("update", help="Set a product's quantity")
    cart_update_parser.add_argument("product_id", help="Product ID")
    cart_update_parser.add_argument("quantity", type=int, help="New quantity (0 removes)")

    cart_remove_parser = cart_subparsers.add_parser("remove", help="Remove a product")
    cart_remove_parser.add_argument("product_id", help="Product ID")

    cart_subparsers.add_parser("clear", help="Empty the cart")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


GROUP_COMMANDS = {
    "stores": ("stores_command", {
        "list": cmd_stores_list,
        "nearest": cmd_stores_nearest,
        "open": cmd_stores_open,
    }),
    "phone": ("phone_command", {
        "validate": cmd_phone_validate,
        "format": cmd_phone_format,
        "equals": cmd_phone_equals,
    }),
    "select": ("select_command", {
        "show": cmd_select_show,
        "set": cmd_select_set,
        "locate": cmd_select_locate,
        "check": cmd_select_check,
        "reset": cmd_select_reset,
    }),
    "cart": ("cart_command", {
        "show": cmd_cart_show,
        "add": cmd_cart_add,
        "update": cmd_cart_update,
        "remove": cmd_cart_remove,
        "clear": cmd_cart_clear,
    }),
}


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "serve":
        return cmd_serve(args)

    dest, commands = GROUP_COMMANDS[args.command]
    subcommand = getattr(args, dest, None)
    if not subcommand:
        parser.parse_args([args.command, "--help"])
        return 0

    return commands[subcommand](args)


if __name__ == "__main__":
    sys.exit(main())
