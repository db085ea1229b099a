from outline_sidebar.cli import main

raise SystemExit(main())
