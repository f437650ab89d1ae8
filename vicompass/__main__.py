from vicompass.cli import main

raise SystemExit(main())
