from datetime import datetime


def print_banner(service_name: str, version: str = "1.0.0"):
    """
    Print the startup banner.

    Args:
        service_name: Name of the service starting up
        version: Version number of the service (default: "1.0.0")
    """
    print("=" * 80)
    print("  NODE REGISTRY - Fleet node inventory service")
    print("=" * 80)
    print(f"  Service:        {service_name}")
    print(f"  Version:        {version}")
    print(f"  Started:        {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("-" * 80)
    print("  Endpoints:      POST|GET|DELETE /node   GET /nodes   GET /health")
    print("=" * 80)
    print()
