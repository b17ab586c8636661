from canteen_ledger.cli import main

raise SystemExit(main())
