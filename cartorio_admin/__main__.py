# cartorio_admin/__main__.py
# Permite rodar: python -m cartorio_admin <subcomando>
from .main import main

if __name__ == "__main__":
    raise SystemExit(main())
