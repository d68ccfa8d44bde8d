import click
from shop import create_app, db
from shop.models import User, ApiLog, Product, Customer, Transaction, Rental, ReservationMark, Payment

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'User': User,
        'ApiLog': ApiLog,
        'Product': Product,
        'Customer': Customer,
        'Transaction': Transaction,
        'Rental': Rental,
        'ReservationMark': ReservationMark,
        'Payment': Payment,
    }


@app.cli.command('seed_db')
def seed_db_command():
    """Add sample products and an admin agent."""
    db.create_all()

    products = [
        Product(name='Caftan brodé', category='Caftan', size='M', color='Bordeaux', brand='Atelier',
                purchase_price=18000, sale_price=35000, rental_price_per_day=4000, stock=2),
        Product(name='Karakou velours', category='Karakou', size='S', color='Noir', brand='Atelier',
                purchase_price=25000, sale_price=48000, rental_price_per_day=6000, stock=1),
        Product(name='Ceinture dorée', category='Accessoire', color='Or', brand='Maison',
                purchase_price=2000, sale_price=4500, rental_price_per_day=500, stock=6,
                is_available_for_rental=False),
    ]
    db.session.add_all(products)

    if not User.query.filter_by(email='admin@boutique.dz').first():
        admin = User(name='Admin', email='admin@boutique.dz', role='admin')
        admin.set_password('admin1234')
        db.session.add(admin)

    db.session.commit()
    click.echo(f'Database seeded with {len(products)} products and the admin agent admin@boutique.dz.')


@app.cli.command('create_agent')
@click.argument('name')
@click.argument('email')
@click.password_option()
@click.option('--admin', is_flag=True, help='Give the agent the admin role.')
def create_agent_command(name, email, password, admin):
    """Create a shop agent who can log in."""
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException(f'An agent with e-mail {email} already exists.')
    user = User(name=name, email=email, role='admin' if admin else 'agent')
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f'Agent {name} <{email}> created.')
