from sales_sparring.cli import main

main()
