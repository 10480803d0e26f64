from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Lesson',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('draft', 'draft'), ('processing', 'processing'), ('plan_ready', 'plan_ready'), ('intro_ready', 'intro_ready'), ('ready', 'ready')], default='draft', max_length=16)),
                ('plan', models.JSONField(blank=True, default=dict)),
                ('content', models.JSONField(blank=True, default=dict)),
                ('device_id', models.CharField(blank=True, db_index=True, max_length=128, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('profile_type', models.CharField(choices=[('pupil', 'pupil'), ('student', 'student'), ('professional', 'professional'), ('other', 'other')], default='other', max_length=16)),
                ('education_level', models.CharField(blank=True, max_length=100, null=True)),
                ('specialty', models.CharField(blank=True, max_length=150, null=True)),
                ('name', models.CharField(blank=True, default='', max_length=150)),
                ('birthdate', models.DateField(blank=True, null=True)),
                ('device_id', models.CharField(max_length=128, unique=True)),
                ('country', models.CharField(blank=True, max_length=100, null=True)),
                ('institution_name', models.CharField(blank=True, max_length=200, null=True)),
                ('series', models.CharField(blank=True, max_length=50, null=True)),
                ('study_year', models.CharField(blank=True, max_length=50, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='LessonProgress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(db_index=True, max_length=128)),
                ('current_section_index', models.PositiveIntegerField(default=0)),
                ('current_subsection_index', models.PositiveIntegerField(default=0)),
                ('completed_sections', models.JSONField(blank=True, default=list)),
                ('is_completed', models.BooleanField(default=False)),
                ('last_reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('next_review_at', models.DateTimeField(blank=True, null=True)),
                ('review_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lesson', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progress_records', to='lessons.lesson')),
            ],
            options={
                'unique_together': {('lesson', 'device_id')},
            },
        ),
    ]
