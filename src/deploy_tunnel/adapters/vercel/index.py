"""Process entry point for the Vercel adapter."""

import sys

from deploy_tunnel.adapters.vercel.adapter import VercelAdapter

if __name__ == "__main__":
    sys.exit(VercelAdapter().run())
