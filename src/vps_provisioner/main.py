"""CLI entry point for VPS Provisioner."""

import argparse
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from vps_provisioner import __version__
from vps_provisioner.collector import InputCollector, collect_from_environment
from vps_provisioner.config import LoggingConfig, ProvisioningConfig
from vps_provisioner.exceptions import ProvisionerError, ValidationError
from vps_provisioner.host import HostState
from vps_provisioner.provisioner import Provisioner, RunSummary
from vps_provisioner.steps.tls import ACME_HOME
from vps_provisioner.types import Outcome
from vps_provisioner.utils.log import close_logging, configure_logging

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="VPS Provisioner - harden a fresh Debian/Ubuntu server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Answer the questions interactively
  sudo vps-provision

  # Take every answer from the environment / .env file
  sudo SSH_PORT=2222 INSTALL_ACME_SH=no vps-provision --from-env --yes

  # Dry run
  sudo vps-provision --dry-run

Environment variables (with --from-env):
  SSH_PORT                       - SSH port number (default 22)
  CREATE_NEW_USER, USER_NAME     - Create a sudo user
  INSTALL_FAIL2BAN               - Install fail2ban (yes/no)
  F2B_MAX_RETRY, F2B_BAN_TIME    - fail2ban tunables
  ENABLE_BBR                     - Enable TCP BBR (yes/no)
  INSTALL_ACME_SH                - Issue a TLS certificate (yes/no)
  ACME_DOMAIN, ACME_EMAIL        - Certificate domain and contact
  INSTALL_DOCKER                 - Install Docker (yes/no)
  EXTRA_TCP_PORTS, EXTRA_UDP_PORTS - Space-separated extra ports to allow
  LOG_LEVEL, LOG_FILE            - Logging
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "--from-env",
        action="store_true",
        help="Read answers from the environment instead of prompting",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        help="Dotenv file to read answers and logging settings from",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log commands and file changes without applying them",
    )

    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before provisioning",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    return parser.parse_args(argv)


def setup_logging(args: argparse.Namespace) -> None:
    log_config = LoggingConfig(_env_file=args.env_file) if args.env_file else LoggingConfig()
    level = log_config.level
    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"
    configure_logging(level, log_config.file)


def print_config(config: ProvisioningConfig) -> None:
    def on_off(flag: bool) -> str:
        return "Enabled" if flag else "Disabled"

    print("\n📋 Configuration Summary:")
    print(f"  SSH Port: {config.ssh_port}")
    print(f"  New User: {config.user_name if config.create_user else 'Disabled'}")
    if config.install_ban_policy:
        print(
            f"  Fail2ban: Enabled (maxretry={config.ban_max_retry}, "
            f"bantime={config.ban_time}s)"
        )
    else:
        print("  Fail2ban: Disabled")
    print(f"  TCP BBR: {on_off(config.enable_congestion_tuning)}")
    if config.install_tls:
        print(f"  TLS Certificate: {config.acme_domain} ({config.acme_email})")
    else:
        print("  TLS Certificate: Disabled")
    print(f"  Docker: {on_off(config.install_container_runtime)}")
    tcp = " ".join(str(p) for p in sorted(config.extra_tcp_ports)) or "none"
    udp = " ".join(str(p) for p in sorted(config.extra_udp_ports)) or "none"
    print(f"  Extra TCP Ports: {tcp}")
    print(f"  Extra UDP Ports: {udp}\n")


def print_report(config: ProvisioningConfig, summary: RunSummary) -> None:
    print("\n📊 Provisioning Report:")
    print(summary.render())

    if not summary.succeeded:
        print(f"\n❌ Provisioning stopped at: {summary.fatal_failure.name}")
        return

    print("\n╔══════════════════════════════════════╗")
    print("║      ✅ PROVISIONING COMPLETE!       ║")
    print("╚══════════════════════════════════════╝")
    print("\n📌 Important Reminders:")
    print(f"  • SSH now runs on port {config.ssh_port}")
    print("  • Password authentication is disabled; use SSH keys")
    if config.create_user:
        print(f"  • Log out from root and log back in as '{config.user_name}'")
    tls = summary.outcome_of("tls issuance")
    if tls is not None and tls.outcome == Outcome.SUCCESS:
        print(f"  • Certificates are in {ACME_HOME}/{config.acme_domain}_ecc/")
    print("  • A reboot is highly recommended: sudo reboot\n")


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """Main entry point for CLI.

    Raises:
        SystemExit: Always exits with appropriate code
    """
    args = parse_args(argv)

    if not sys.platform.startswith("linux"):
        print("Error: This tool only supports Linux systems", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    interactive = sys.stdin.isatty()
    if not interactive and not (args.from_env and args.yes):
        print(
            "Error: This tool must be run in an interactive terminal.\n"
            "It cannot read answers from piped input. Run it from a terminal, "
            "or pass --from-env --yes to take every answer from the environment.",
            file=sys.stderr,
        )
        sys.exit(EXIT_USAGE)

    try:
        setup_logging(args)

        if not args.quiet:
            print("╔══════════════════════════════════════╗")
            print("║  VPS PROVISIONER                     ║")
            print(f"║  Version {__version__:<28}║")
            print("╚══════════════════════════════════════╝\n")

            if args.dry_run:
                print("🔍 DRY RUN MODE - No changes will be applied\n")

        if args.from_env:
            config = collect_from_environment(args.env_file)
        else:
            config = InputCollector().collect_interactive()

        if not args.quiet:
            print_config(config)

        if not args.yes:
            response = input("Proceed with provisioning? (yes/no): ")
            if response.strip().lower() not in ("y", "yes"):
                print("Aborted.")
                sys.exit(0)

        host = HostState.local(dry_run=args.dry_run)
        summary = Provisioner(config, host).run()

        print_report(config, summary)
        sys.exit(summary.exit_code)

    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    except EOFError:
        print("\n❌ Error: input ended before all questions were answered", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    except ValidationError as e:
        print(f"\n❌ Invalid configuration: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    except ProvisionerError as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    finally:
        close_logging()


if __name__ == "__main__":
    main()
