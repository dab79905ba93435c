from protpipe.cli import main

raise SystemExit(main())
